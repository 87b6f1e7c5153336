"""Recurrence rules for repeating tasks.

A rule is stored on the task as a small JSON object::

    {"frequency": "monthly", "interval": 3, "daysOfWeek": [1], "endDate": "2025-06-30"}

``frequency`` "none" (or no frequency at all) means the task does not repeat;
that case is always represented by ``None`` rather than by a rule instance.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, TypeVar

from .enums import RecurrenceFrequency

logger = logging.getLogger(__name__)

_D = TypeVar("_D", date, datetime)

RECURRENCE_OPTIONS = [
    ("Does not repeat", RecurrenceFrequency.NONE),
    ("Daily", RecurrenceFrequency.DAILY),
    ("Weekly", RecurrenceFrequency.WEEKLY),
    ("Monthly", RecurrenceFrequency.MONTHLY),
    ("Yearly", RecurrenceFrequency.YEARLY),
]

UNIT_NAMES = {
    RecurrenceFrequency.DAILY: "days",
    RecurrenceFrequency.WEEKLY: "weeks",
    RecurrenceFrequency.MONTHLY: "months",
    RecurrenceFrequency.YEARLY: "years",
}


@dataclass(frozen=True)
class RecurrenceRule:
    frequency: RecurrenceFrequency
    interval: int = 1
    # 0 = Sunday. Kept on the rule but not used when computing the next date.
    days_of_week: tuple[int, ...] | None = None
    end_date: datetime | None = None

    def __post_init__(self) -> None:
        frequency = RecurrenceFrequency(self.frequency)
        if frequency == RecurrenceFrequency.NONE:
            raise ValueError("A non-repeating task has no rule; use None instead")
        if self.interval < 1:
            raise ValueError(f"Interval must be at least 1, got {self.interval}")
        object.__setattr__(self, "frequency", frequency)
        if self.days_of_week is not None:
            object.__setattr__(self, "days_of_week", tuple(sorted(set(self.days_of_week))))
        if self.end_date is not None:
            object.__setattr__(self, "end_date", _as_utc(self.end_date))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"frequency": self.frequency.value, "interval": self.interval}
        if self.days_of_week is not None:
            data["daysOfWeek"] = list(self.days_of_week)
        if self.end_date is not None:
            data["endDate"] = self.end_date.isoformat()
        return data


def parse_rule(value: Any) -> RecurrenceRule | None:
    """Return the rule held by ``value`` or None.

    Accepts a rule, a mapping, a JSON string or a bare frequency name. Corrupt
    data is logged and treated as "does not repeat"; this never raises.
    """
    if isinstance(value, RecurrenceRule):
        return value
    if not value:
        return None
    try:
        if isinstance(value, str):
            text = value.strip()
            if text in RecurrenceFrequency.__members__.values():
                return _rule_from_mapping({"frequency": text})
            return _rule_from_mapping(json.loads(text))
        return _rule_from_mapping(value)
    except (TypeError, ValueError, OverflowError) as exc:
        logger.warning("Ignoring malformed recurrence %r: %s", value, exc)
        return None


def serialize_rule(rule: RecurrenceRule | None) -> str | None:
    if rule is None:
        return None
    return json.dumps(rule.to_dict())


def format_rule(rule: RecurrenceRule | None) -> str:
    if rule is None:
        return ""
    if rule.interval == 1:
        return rule.frequency.value
    return f"every {rule.interval} {UNIT_NAMES[rule.frequency]}"


def next_due_date(from_date: datetime, rule: RecurrenceRule) -> datetime | None:
    """Due date following ``from_date``, or None once past the rule's end date.

    Steps are taken on ``from_date``'s own wall clock, so pass a local datetime
    to move by local calendar days. A result outside the supported date range
    raises ``ValueError`` or ``OverflowError``.
    """
    interval = rule.interval
    if rule.frequency == RecurrenceFrequency.DAILY:
        next_date = from_date + timedelta(days=interval)
    elif rule.frequency == RecurrenceFrequency.WEEKLY:
        next_date = from_date + timedelta(weeks=interval)
    elif rule.frequency == RecurrenceFrequency.MONTHLY:
        next_date = add_months(from_date, interval)
    elif rule.frequency == RecurrenceFrequency.YEARLY:
        next_date = add_months(from_date, 12 * interval)
    else:
        raise ValueError(f"Unsupported frequency: {rule.frequency}")

    if rule.end_date is not None and _as_utc(next_date) > rule.end_date:
        return None
    return next_date


def add_months(base: _D, months: int) -> _D:
    year = base.year + (base.month - 1 + months) // 12
    month = (base.month - 1 + months) % 12 + 1
    day = min(base.day, days_in_month(year, month))
    return base.replace(year=year, month=month, day=day)


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - timedelta(days=1)).day


def _rule_from_mapping(data: Any) -> RecurrenceRule | None:
    if not isinstance(data, Mapping):
        raise TypeError(f"expected an object, got {type(data).__name__}")
    raw_frequency = data.get("frequency")
    if not raw_frequency or raw_frequency == RecurrenceFrequency.NONE.value:
        return None
    return RecurrenceRule(
        frequency=RecurrenceFrequency(raw_frequency),
        interval=_parse_interval(data.get("interval")),
        days_of_week=_parse_days(data.get("daysOfWeek", data.get("days_of_week"))),
        end_date=_parse_instant(data.get("endDate", data.get("end_date"))),
    )


def _parse_interval(raw: Any) -> int:
    if raw is None or raw == "":
        return 1
    if isinstance(raw, bool):
        raise TypeError("interval must be a number")
    return max(int(raw), 1)


def _parse_days(raw: Any) -> tuple[int, ...] | None:
    if not isinstance(raw, (list, tuple)):
        return None
    return tuple(
        day for day in raw
        if isinstance(day, int) and not isinstance(day, bool) and 0 <= day <= 6
    )


def _parse_instant(raw: Any) -> datetime | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return _as_utc(raw)
    if isinstance(raw, date):
        return datetime.combine(raw, time.min, tzinfo=timezone.utc)
    if not isinstance(raw, str):
        raise TypeError(f"endDate must be a string, got {type(raw).__name__}")
    text = raw.strip()
    if len(text) == 10:
        return datetime.combine(date.fromisoformat(text), time.min, tzinfo=timezone.utc)
    return _as_utc(datetime.fromisoformat(text))


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
