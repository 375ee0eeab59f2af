"""UserSession SQLAlchemy model"""

from sqlalchemy import Boolean, Column, DateTime, Index, String, Text

from .base import Base, DocumentMixin, new_id


class UserSession(DocumentMixin, Base):
    """Server-side record backing one issued JWT.

    The token itself is stateless; this row is what makes early revocation
    possible. Rows are never deleted on logout, only flagged revoked, and
    become inert once expired. ``cleanup_expired`` removes them later.
    """
    __tablename__ = "sessions"
    __table_args__ = (
        Index("ix_sessions_tenant_user_revoked", "tenant_id", "user_id", "is_revoked"),
        Index("ix_sessions_expires_at", "expires_at"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    token_id = Column(String(64), nullable=False, unique=True)
    user_id = Column(String(64), nullable=False)
    tenant_id = Column(String(64), nullable=False, index=True)
    issued_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    last_active_at = Column(DateTime(timezone=True), nullable=False)

    # Device metadata (coarse, no fingerprinting)
    device_type = Column(Text, nullable=True)
    browser = Column(Text, nullable=True)
    os = Column(Text, nullable=True)
    user_agent = Column(Text, nullable=True)
    ip_hash = Column(String(64), nullable=True)

    # Revocation
    is_revoked = Column(Boolean, nullable=False, default=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    revoked_reason = Column(Text, nullable=True)
    revoked_by = Column(String(64), nullable=True)
