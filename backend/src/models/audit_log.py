"""AuditLog SQLAlchemy model"""

from sqlalchemy import Column, DateTime, Index, String, Text

from .base import Base, DocumentMixin, PortableJSONB, new_id


class AuditLog(DocumentMixin, Base):
    """AuditLog model for immutable security and entity-mutation events.

    Entries are append-only and should never be updated or deleted.
    Update events carry an ordered field-level diff in ``changes``;
    create/delete/auth events carry a snapshot in ``details``.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_tenant_timestamp", "tenant_id", "timestamp"),
        Index("ix_audit_logs_tenant_module", "tenant_id", "module"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(64), nullable=False)
    module = Column(Text, nullable=False)
    action = Column(Text, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    actor_id = Column(String(64), nullable=True)
    actor_name = Column(Text, nullable=True)
    actor_role = Column(Text, nullable=True)
    ip_address = Column(Text, nullable=True)
    user_agent = Column(Text, nullable=True)
    entity_id = Column(String(64), nullable=True)
    entity_name = Column(Text, nullable=True)
    changes = Column(PortableJSONB, nullable=True)
    details = Column(PortableJSONB, nullable=True)
