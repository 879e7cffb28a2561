"""
Clock -- Injectable time source.

Responsibility:
    Services, domain functions and insight builders never call
    ``datetime.now()`` directly.  They receive a Clock (services) or a ``now``
    argument (pure functions), so restock dates, alert timestamps, ledger
    ordering and insight expiry are reproducible in tests.

Architecture position:
    Kernel > Domain -- zero I/O except SystemClock, the one sanctioned time
    boundary.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        ``now()`` returns a timezone-aware UTC ``datetime``.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Production clock returning real UTC time."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` returns the same value until ``advance()``, ``tick()`` or
    ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: int = 0, *, days: int = 0) -> datetime:
        """Move the clock forward and return the new time."""
        self._current = self._current + timedelta(days=days, seconds=seconds)
        return self._current

    def tick(self) -> datetime:
        """Advance by 1 second and return the new time."""
        return self.advance(1)
