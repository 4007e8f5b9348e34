"""
Injectable time source.

Archive captions are stamped with the moment the archive is written. The
archiver asks a Clock for that moment so tests can pin it.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Source of timezone-aware 'now' values."""

    @abstractmethod
    def now(self) -> datetime: ...

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Frozen clock; moves only through ``advance`` or ``set_time``."""

    def __init__(self, fixed: datetime | None = None):
        if fixed is not None and fixed.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware datetime")
        self._current = fixed or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._current

    def set_time(self, moment: datetime) -> None:
        self._current = moment

    def advance(self, seconds: float = 1) -> None:
        self._current += timedelta(seconds=seconds)
