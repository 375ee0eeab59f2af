"""Plan restrictions - free-tier write gate with signup grace period.

This module provides:
- RestrictionGate: cached per-tenant restriction status and a write guard
- Restriction caches: per-process (default) and shared Redis
- restriction_guard: FastAPI dependency form of the write guard
"""

from .schemas import RestrictionBlock, RestrictionStatus

__all__ = [
    "RestrictionBlock",
    "RestrictionStatus",
]
