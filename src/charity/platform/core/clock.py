"""Injectable time source.

Every same-day and expiry decision reads time through a :class:`Clock` so
the service day is defined in one place and tests can freeze it.
"""

from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from charity.platform.settings import settings


class Clock:
    """Base clock. Subclasses only provide ``now()``."""

    def __init__(self, timezone: str | None = None) -> None:
        self.tz = ZoneInfo(timezone or settings.tickets.timezone)

    def now(self) -> datetime:
        """Current instant, timezone-aware in UTC."""
        raise NotImplementedError

    def today(self) -> date:
        """Calendar date of ``now()`` in the service timezone."""
        return self.local_date(self.now())

    def local_date(self, moment: datetime) -> date:
        """Calendar date of ``moment`` in the service timezone."""
        return ensure_aware(moment).astimezone(self.tz).date()

    def day_bounds(self, day: date) -> tuple[datetime, datetime]:
        """UTC instants bounding the local calendar day ``[start, end)``."""
        start = datetime.combine(day, time.min, tzinfo=self.tz)
        end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=self.tz)
        return start.astimezone(UTC), end.astimezone(UTC)


class SystemClock(Clock):
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FrozenClock(Clock):
    """Clock pinned to a fixed instant; used by tests and replays."""

    def __init__(self, instant: datetime, timezone: str | None = None) -> None:
        super().__init__(timezone)
        self._instant = ensure_aware(instant)

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        self._instant = ensure_aware(instant)

    def advance(self, delta: timedelta) -> None:
        self._instant = self._instant + delta


def ensure_aware(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC.

    SQLite drops tzinfo on ``DateTime(timezone=True)`` columns, so values read
    back from it are naive even though they were stored as UTC.
    """
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


__all__ = ["Clock", "SystemClock", "FrozenClock", "ensure_aware"]
