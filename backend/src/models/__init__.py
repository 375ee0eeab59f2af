"""SQLAlchemy Models for TenantGuard"""

from .base import Base, DocumentMixin, PortableJSONB
from .session import UserSession
from .audit_log import AuditLog
from .billing import TenantAccount, PaymentRecord
from .student import Student

# Collection name -> ORM model, used by the SQLAlchemy record store adapter
COLLECTION_MODELS = {
    UserSession.__tablename__: UserSession,
    AuditLog.__tablename__: AuditLog,
    TenantAccount.__tablename__: TenantAccount,
    PaymentRecord.__tablename__: PaymentRecord,
    Student.__tablename__: Student,
}

__all__ = [
    "Base",
    "DocumentMixin",
    "PortableJSONB",
    "UserSession",
    "AuditLog",
    "TenantAccount",
    "PaymentRecord",
    "Student",
    "COLLECTION_MODELS",
]
