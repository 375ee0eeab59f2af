"""FastAPI dependency form of the plan write gate.

Usage:
    @router.post("/attendance", dependencies=[Depends(restriction_guard("attendance"))])
    async def mark_attendance(...):
        ...

A blocked write answers HTTP 402 with the RestrictionBlock payload as
``detail`` so clients can show an upgrade prompt.
"""

from typing import Callable

from fastapi import Depends, HTTPException, status

from auth.dependencies import get_session_context
from auth.schemas import SessionContext
from dependencies import get_restriction_gate

from .service import RestrictionGate


def restriction_guard(module: str) -> Callable:
    """Create a dependency that refuses writes to ``module`` for restricted tenants."""

    async def guard(
        session: SessionContext = Depends(get_session_context),
        gate: RestrictionGate = Depends(get_restriction_gate),
    ) -> None:
        block = await gate.assert_write_allowed(session.tenant_id, module)
        if block is not None:
            raise HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail=block.model_dump())

    return guard
