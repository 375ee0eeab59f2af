"""Pydantic schemas for the audit trail.

Defines the normalized envelope every audit entry is built from, plus the
read-only response contracts of the audit query endpoint.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AuditModule(str, Enum):
    """Product area an audit entry belongs to."""
    COURSES = "courses"
    SCHEDULES = "schedules"
    ATTENDANCE = "attendance"
    PAYMENTS = "payments"
    STUDENTS = "students"
    USERS = "users"
    EVENTS = "events"
    AUTH = "auth"


class AuditAction(str, Enum):
    """Entity mutation actions. Auth events use free-form action names."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class AuditActor(BaseModel):
    """Who performed the action."""
    id: str
    name: Optional[str] = None
    role: Optional[str] = None


class FieldChange(BaseModel):
    """One field of an update diff. Values are stored as strings."""
    field: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None


class AuditEnvelope(BaseModel):
    """Normalized audit entry, independent of how it is persisted."""
    tenant_id: str
    module: str
    action: str
    timestamp: datetime
    actor: Optional[AuditActor] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    entity_id: Optional[str] = None
    entity_name: Optional[str] = None
    changes: Optional[List[FieldChange]] = None
    details: Optional[Dict[str, Any]] = None

    def to_document(self) -> Dict[str, Any]:
        """Flatten into the ``audit_logs`` record shape.

        ``changes`` and ``details`` are rendered JSON-safe (datetimes become
        ISO strings) since they land in a JSON column.
        """
        json_safe = self.model_dump(mode="json", include={"changes", "details"})
        return {
            "tenant_id": self.tenant_id,
            "module": self.module,
            "action": self.action,
            "timestamp": self.timestamp,
            "actor_id": self.actor.id if self.actor else None,
            "actor_name": self.actor.name if self.actor else None,
            "actor_role": self.actor.role if self.actor else None,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "entity_id": self.entity_id,
            "entity_name": self.entity_name,
            "changes": json_safe["changes"],
            "details": json_safe["details"],
        }


class AuditLogResponse(BaseModel):
    """Response schema for audit log entries.

    Returned by audit log query endpoints. All fields are read-only.
    """
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Audit log entry unique identifier")
    tenant_id: str = Field(..., description="Tenant the entry belongs to")
    module: str = Field(..., description="Product area (courses, payments, auth, ...)")
    action: str = Field(..., description="CREATE, UPDATE, DELETE or an auth event name")
    timestamp: datetime = Field(..., description="Event timestamp")
    actor_id: Optional[str] = Field(None, description="User who performed the action")
    actor_name: Optional[str] = Field(None, description="Actor display name")
    actor_role: Optional[str] = Field(None, description="Actor role at the time of the event")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client User-Agent header")
    entity_id: Optional[str] = Field(None, description="ID of affected entity")
    entity_name: Optional[str] = Field(None, description="Display name of affected entity")
    changes: Optional[List[FieldChange]] = Field(None, description="Ordered field-level diff")
    details: Optional[Dict[str, Any]] = Field(None, description="Snapshot or event context")


class AuditLogListResponse(BaseModel):
    """Response schema for audit log queries. Includes pagination metadata."""
    entries: List[AuditLogResponse] = Field(..., description="List of audit log entries")
    total: int = Field(..., description="Total number of entries matching filters")
    page: int = Field(..., description="Current page number")
    per_page: int = Field(..., description="Entries per page")
