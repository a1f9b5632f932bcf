"""Clock port and its two adapters."""

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current instant, timezone-aware UTC."""
        ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(UTC)


class FrozenClock(Clock):
    """A clock that only moves when told to."""

    def __init__(self, moment: datetime | None = None) -> None:
        self._moment = as_utc(moment) if moment else datetime.now(UTC)

    def now(self) -> datetime:
        return self._moment

    def set(self, moment: datetime) -> None:
        self._moment = as_utc(moment)

    def advance(self, **delta) -> datetime:
        """Move forward by timedelta keyword arguments, e.g. ``advance(days=7)``."""
        self._moment = self._moment + timedelta(**delta)
        return self._moment
