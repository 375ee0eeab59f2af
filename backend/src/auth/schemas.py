"""Pydantic schemas for sessions and session endpoints"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from clock import ensure_aware


class SessionClaims(BaseModel):
    """Identity embedded into a newly issued token.

    Attributes:
        user_id: Authenticated user
        tenant_id: Tenant the session is bound to
        role: User role within the tenant
        email: Optional, carried for display only
        name: Optional, carried for display and audit only
    """
    user_id: str = Field(..., min_length=1)
    tenant_id: str = Field(..., min_length=1)
    role: str = Field(..., min_length=1)
    email: Optional[str] = None
    name: Optional[str] = None


class SessionRecord(BaseModel):
    """A persisted session row."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    token_id: str
    user_id: str
    tenant_id: str
    issued_at: datetime
    expires_at: datetime
    last_active_at: datetime
    device_type: Optional[str] = None
    browser: Optional[str] = None
    os: Optional[str] = None
    user_agent: Optional[str] = None
    ip_hash: Optional[str] = None
    is_revoked: bool = False
    revoked_at: Optional[datetime] = None
    revoked_reason: Optional[str] = None
    revoked_by: Optional[str] = None

    @field_validator("issued_at", "expires_at", "last_active_at", "revoked_at")
    @classmethod
    def _aware_datetimes(cls, value: Optional[datetime]) -> Optional[datetime]:
        # SQLite hands back naive datetimes; everything here is UTC
        return ensure_aware(value) if value is not None else None

    def is_active(self, now: datetime) -> bool:
        """Not revoked and not yet expired."""
        return not self.is_revoked and self.expires_at > now


class SessionContext(BaseModel):
    """Trusted identity of the current request, built only from a live session."""
    user_id: str
    tenant_id: str
    role: str
    token_id: str
    session_id: str
    name: Optional[str] = None
    email: Optional[str] = None


class SessionSummary(BaseModel):
    """Session as shown to users and admins (no revocation internals)."""
    token_id: str
    issued_at: datetime
    last_active_at: datetime
    expires_at: datetime
    device_type: Optional[str] = None
    browser: Optional[str] = None
    os: Optional[str] = None
    user_agent: Optional[str] = None
    is_current: bool = False

    @classmethod
    def from_record(cls, record: SessionRecord, current_token_id: Optional[str] = None) -> "SessionSummary":
        return cls(
            token_id=record.token_id,
            issued_at=record.issued_at,
            last_active_at=record.last_active_at,
            expires_at=record.expires_at,
            device_type=record.device_type,
            browser=record.browser,
            os=record.os,
            user_agent=record.user_agent,
            is_current=record.token_id == current_token_id,
        )


class SessionListResponse(BaseModel):
    sessions: List[SessionSummary]
    total_sessions: int


class RevokeResponse(BaseModel):
    success: bool = True
    revoked_count: int
    message: Optional[str] = None


class AdminRevokeAction(str, Enum):
    REVOKE_SESSION = "revoke-session"
    REVOKE_ALL_USER = "revoke-all-user"


class AdminRevokeRequest(BaseModel):
    """Body of DELETE /auth/admin/sessions.

    ``token_id`` is required for revoke-session, ``user_id`` for revoke-all-user.
    """
    action: AdminRevokeAction
    token_id: Optional[str] = None
    user_id: Optional[str] = None

    @model_validator(mode="after")
    def _target_present(self):
        if self.action == AdminRevokeAction.REVOKE_SESSION and not self.token_id:
            raise ValueError("token_id is required for revoke-session")
        if self.action == AdminRevokeAction.REVOKE_ALL_USER and not self.user_id:
            raise ValueError("user_id is required for revoke-all-user")
        return self

