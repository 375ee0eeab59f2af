"""Clock abstraction.

Services take a ``Clock`` (any zero-argument callable returning an aware UTC
datetime) so tests can pin "now" without patching the datetime module.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class FrozenClock:
    """Manually advanced clock for tests and replay tooling.

    Example:
        clock = FrozenClock(datetime(2025, 1, 1, tzinfo=timezone.utc))
        clock.advance(minutes=1)
    """

    def __init__(self, now: datetime):
        self._now = ensure_aware(now)

    def __call__(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        self._now = ensure_aware(now)

    def advance(self, **delta) -> datetime:
        self._now = self._now + timedelta(**delta)
        return self._now
