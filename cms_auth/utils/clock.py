"""
Clock utilities.

All timestamps are stored as naive UTC datetimes. Services receive a clock
callable so tests can freeze or advance time.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class FrozenClock:
    """Controllable clock for scripts and tests."""

    def __init__(self, start: datetime = None):
        self.current = start or utcnow()

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current
