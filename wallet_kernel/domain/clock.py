"""
Injectable time source.

Transaction dates and rate effective times are taken from the Clock a
service was built with, never from ``datetime.now()``, so tests can pin
and move time.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

EPOCH_FOR_TESTS = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of timezone-aware UTC timestamps."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    ``now()`` keeps returning the same instant until ``advance()``,
    ``tick()`` or ``set_time()`` moves it.  Naive datetimes are rejected.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = EPOCH_FOR_TESTS
        if fixed_time is not None:
            self.set_time(fixed_time)

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        if time.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware datetime")
        self._current = time.astimezone(timezone.utc)

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Move one second forward and return the new instant."""
        self.advance()
        return self._current
