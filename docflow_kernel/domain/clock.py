"""
Clock -- injectable time source for transition timestamps.

Responsibility:
    Every ``occurred_at`` on a Transition and every ``created_at`` on a
    registered document comes from an injected Clock.  Services never call
    ``datetime.now()`` themselves.

Architecture position:
    Kernel > Domain.  SystemClock is the one sanctioned I/O boundary for
    time; everything else here is pure.

Invariants enforced:
    - Clocks only hand out timezone-aware UTC datetimes.  The transition
      hash chain hashes timestamps in UTC, so a naive or non-UTC value
      would make the same event hash differently on another backend.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _require_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        raise ValueError(f"naive datetime {value.isoformat()} is not allowed; use UTC")
    return value.astimezone(timezone.utc)


class Clock(ABC):
    """Source of the current time, always timezone-aware UTC."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` returns the same value until ``advance()``, ``tick()`` or
    ``set_time()`` moves it.  Time never goes backwards through
    ``advance()``.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = _require_utc(fixed_time or DEFAULT_TEST_TIME)

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = _require_utc(time)

    def advance(self, seconds: int = 1) -> None:
        if seconds < 0:
            raise ValueError("cannot advance a clock backwards")
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Advance by one second and return the new time."""
        self.advance(1)
        return self._current
