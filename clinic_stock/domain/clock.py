"""
Clock -- Deterministic time abstraction.

Responsibility:
    Provides an injectable clock so that services and repositories never
    call ``datetime.now()`` or ``date.today()`` directly.  Movement
    timestamps, user creation timestamps, expiration checks and report
    windows all read time from a Clock instance.

Failure modes:
    - None.  ``DeterministicClock`` never advances on its own.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        ``now()`` returns a timezone-aware UTC ``datetime``; ``today()``
        is the UTC calendar date of ``now()``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...

    def today(self) -> date:
        """Get the current UTC date."""
        return self.now().astimezone(timezone.utc).date()


class SystemClock(Clock):
    """Production clock that returns actual system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        - ``now()`` returns the same value on repeated calls until
          ``advance()`` or ``set_time()`` is called.
        - ``tick()`` advances by exactly 1 second and returns the new time.
    """

    def __init__(self, fixed_time: datetime | None = None):
        """
        Initialize with optional fixed time.

        Args:
            fixed_time: If provided, clock always returns this time.
                       If None, uses a default epoch time.
        """
        self._fixed_time = fixed_time or datetime(
            2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )
        self._advance_seconds = 0

    def now(self) -> datetime:
        return self._fixed_time + timedelta(seconds=self._advance_seconds)

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        self._fixed_time = time
        self._advance_seconds = 0

    def advance(self, seconds: int = 1) -> None:
        """Advance the clock by the specified seconds."""
        self._advance_seconds += seconds

    def tick(self) -> datetime:
        """Advance by 1 second and return new time."""
        self.advance(1)
        return self.now()


def utc_day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    """
    Half-open UTC interval covering the calendar days ``[start, end]``.

    Returns ``(start 00:00 UTC, day after end 00:00 UTC)`` so that a
    timestamp ``ts`` is inside the inclusive date range iff
    ``lower <= ts < upper``.
    """
    lower = datetime(start.year, start.month, start.day, tzinfo=timezone.utc)
    after = end + timedelta(days=1)
    upper = datetime(after.year, after.month, after.day, tzinfo=timezone.utc)
    return lower, upper
