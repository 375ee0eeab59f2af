"""Pydantic schemas for plan restriction decisions"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

FREE_PLAN = "free"


class RestrictionStatus(BaseModel):
    """Derived, cached restriction decision for one tenant.

    Attributes:
        plan: Active plan name ("free" when no payment record covers now)
        active_entity_count: Non-deleted usage entities (students)
        restricted: True when free, over the limit, and past the grace period
        tenant_account_id: Billing account id, None if the tenant has none
        account_created_at: Billing account creation time
        days_since_created: Whole days since account creation
        computed_at: When this status was computed
    """
    plan: str
    active_entity_count: int
    restricted: bool
    tenant_account_id: Optional[str] = None
    account_created_at: Optional[datetime] = None
    days_since_created: Optional[int] = None
    computed_at: datetime


class RestrictionBlock(BaseModel):
    """Payload returned to callers whose write is blocked by the plan.

    This is an expected business outcome used to prompt an upgrade, not an
    error.
    """
    restricted: Literal[True] = True
    plan: str
    active_entity_count: int
    module: str
    message: str = Field(
        default="Your current plan does not allow this change. Upgrade to continue.",
    )
