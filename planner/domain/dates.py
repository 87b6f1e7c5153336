from __future__ import annotations

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo


class LocalDates:
    """Converts between stored UTC instants and dates shown in one timezone."""

    def __init__(self, tz_name: str = "UTC") -> None:
        self.tz = ZoneInfo(tz_name)

    def to_absolute_instant(self, value: str) -> datetime | None:
        """``YYYY-MM-DD`` -> the UTC instant of local midnight on that day."""
        if not value:
            return None
        local_midnight = datetime.combine(date.fromisoformat(value.strip()), time.min, tzinfo=self.tz)
        return local_midnight.astimezone(timezone.utc)

    def to_local_date_string(self, instant: datetime | None) -> str:
        if instant is None:
            return ""
        return self.to_local(instant).strftime("%Y-%m-%d")

    def to_local_datetime_string(self, instant: datetime | None) -> str:
        if instant is None:
            return ""
        return self.to_local(instant).strftime("%Y-%m-%dT%H:%M")

    def from_local_datetime_string(self, value: str) -> datetime | None:
        if not value:
            return None
        local = datetime.strptime(value.strip(), "%Y-%m-%dT%H:%M").replace(tzinfo=self.tz)
        return local.astimezone(timezone.utc)

    def format_date(self, instant: datetime | None) -> str:
        if instant is None:
            return ""
        return self.to_local(instant).strftime("%d/%m/%Y")

    def format_datetime(self, instant: datetime | None) -> str:
        if instant is None:
            return ""
        return self.to_local(instant).strftime("%d/%m/%Y %H:%M")

    def is_overdue(self, instant: datetime | None, completed: bool, now: datetime) -> bool:
        if instant is None or completed:
            return False
        return self.to_local(now).date() > self.to_local(instant).date()

    def to_local(self, instant: datetime) -> datetime:
        """The same instant on this timezone's wall clock; naive values are UTC."""
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        return instant.astimezone(self.tz)
