"""
Clock -- where settlement dates and audit timestamps come from.

Responsibility:
    SettlementService stamps ``settlement_date`` from ``today()``;
    ReceiptService stamps ``deleted_at``/``restored_at`` from ``now()``.
    Neither calls ``datetime.now()`` itself.

Architecture position:
    Kernel > Domain.  SystemClock is the only place the wall clock is read.

Audit relevance:
    Reprocessing under a DeterministicClock reproduces the exact settlement
    dates of a past run.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone

_DEFAULT_START = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Timezone-aware time source injected into writer services."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        """Settlement date for rows written now."""
        return self.now().date()


class SystemClock(Clock):
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    ``now()`` is stable across calls; ``advance``/``tick`` move it forward,
    ``set_time`` jumps to an absolute instant.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or _DEFAULT_START

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Move one second forward and return the new instant."""
        self.advance(1)
        return self._current
