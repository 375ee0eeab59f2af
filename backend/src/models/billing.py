"""Billing SQLAlchemy models read by the restriction gate.

Only the columns the plan restriction needs are modelled; the payment
provider integration owns the rest of these records.
"""

from sqlalchemy import Column, DateTime, Index, String, Text

from .base import Base, DocumentMixin, new_id


class TenantAccount(DocumentMixin, Base):
    """Billing account of a tenant; ``created_at`` anchors the signup grace period."""
    __tablename__ = "tenant_accounts"

    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(64), nullable=False, unique=True)
    account_id = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)


class PaymentRecord(DocumentMixin, Base):
    """A paid (or free) plan period. Active when start_date <= now <= end_date."""
    __tablename__ = "payment_records"
    __table_args__ = (
        Index("ix_payment_records_tenant_window", "tenant_id", "start_date", "end_date"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(64), nullable=False)
    account_id = Column(String(64), nullable=True)
    plan = Column(Text, nullable=False)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
