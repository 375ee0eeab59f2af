"""Student SQLAlchemy model (usage entity counted against the free plan)"""

from sqlalchemy import Boolean, Column, String, Text

from .base import Base, DocumentMixin, new_id


class Student(DocumentMixin, Base):
    """Minimal student row: only tenant and soft-delete state matter here."""
    __tablename__ = "students"

    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(64), nullable=False, index=True)
    name = Column(Text, nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
