"""Restriction status caches.

Two interchangeable backends:

- ``InMemoryRestrictionCache``: a plain expiring dict, one per process.
  Different processes can disagree about a tenant for up to one TTL.
- ``RedisRestrictionCache``: shared across instances via ``SETEX``. If Redis
  is unreachable, reads behave as misses and writes are skipped, so the gate
  keeps working (recomputing every time) instead of failing requests.

Neither backend takes a lock. Two requests that miss at the same time both
recompute and the last write wins.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from clock import Clock, utc_now

from .schemas import RestrictionStatus

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 120


class RestrictionCache(ABC):
    """Per-tenant TTL cache of RestrictionStatus."""

    @abstractmethod
    async def get(self, tenant_id: str) -> Optional[RestrictionStatus]:
        """Return a fresh cached status, or None on miss/expiry."""

    @abstractmethod
    async def set(self, tenant_id: str, status: RestrictionStatus) -> None:
        """Store a status for one TTL."""

    @abstractmethod
    async def invalidate(self, tenant_id: str) -> None:
        """Drop the cached status for a tenant."""


class InMemoryRestrictionCache(RestrictionCache):
    """Expiring dict keyed by tenant id."""

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS, clock: Clock = utc_now):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._entries: Dict[str, Tuple[datetime, RestrictionStatus]] = {}

    async def get(self, tenant_id: str) -> Optional[RestrictionStatus]:
        entry = self._entries.get(tenant_id)
        if entry is None:
            return None
        expires_at, status = entry
        if self._clock() >= expires_at:
            self._entries.pop(tenant_id, None)
            return None
        return status

    async def set(self, tenant_id: str, status: RestrictionStatus) -> None:
        self._entries[tenant_id] = (self._clock() + self.ttl, status)

    async def invalidate(self, tenant_id: str) -> None:
        self._entries.pop(tenant_id, None)


class RedisRestrictionCache(RestrictionCache):
    """Shared cache for multi-instance deployments."""

    key_prefix = "restriction_status:"

    def __init__(self, client: aioredis.Redis, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.redis = client
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> "RedisRestrictionCache":
        return cls(aioredis.Redis.from_url(url, decode_responses=True), ttl_seconds)

    def _key(self, tenant_id: str) -> str:
        return f"{self.key_prefix}{tenant_id}"

    async def get(self, tenant_id: str) -> Optional[RestrictionStatus]:
        try:
            raw = await self.redis.get(self._key(tenant_id))
        except RedisError:
            logger.warning("Restriction cache read failed, recomputing", exc_info=True)
            return None
        if raw is None:
            return None
        return RestrictionStatus.model_validate_json(raw)

    async def set(self, tenant_id: str, status: RestrictionStatus) -> None:
        try:
            await self.redis.setex(self._key(tenant_id), self.ttl_seconds, status.model_dump_json())
        except RedisError:
            logger.warning("Restriction cache write failed", exc_info=True)

    async def invalidate(self, tenant_id: str) -> None:
        try:
            await self.redis.delete(self._key(tenant_id))
        except RedisError:
            logger.warning("Restriction cache invalidation failed", exc_info=True)
