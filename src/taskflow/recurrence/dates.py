# src/taskflow/recurrence/dates.py

"""
Calendar arithmetic shared by the projector and the materializer.

All recurrence math happens on plain `date` objects (year/month/day only).
They carry no timezone, so stepping can never shift a day across a DST
boundary or a UTC offset. Time-of-day is re-attached at the very end.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from enum import StrEnum
from typing import Any

from ..tasks.task_models import Recurrence

_FIXED_STEPS: dict[Recurrence, timedelta] = {
    Recurrence.DAILY: timedelta(days=1),
    Recurrence.WEEKLY: timedelta(days=7),
    Recurrence.BIWEEKLY: timedelta(days=14),
}


class MonthlyPolicy(StrEnum):
    """
    What "+1 month" means when the target month is shorter.

    - clamp:    Jan 31 -> Feb 29 (2024) / Feb 28, last valid day of the month
    - rollover: Jan 31 -> Mar 2 (2024), overflow days spill into the next month
    """

    CLAMP = "clamp"
    ROLLOVER = "rollover"

    @classmethod
    def parse(cls, raw: str | None) -> MonthlyPolicy:
        if not raw:
            return cls.CLAMP
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.CLAMP


def parse_local_date(raw: Any) -> date | None:
    """
    Interpret `raw` as a local calendar date.

    Accepts date, datetime, or ISO text ("2024-01-31", "2024-01-31T14:30:00",
    "2024-01-31 14:30"). Only the Y-M-D part of text is read, so a trailing
    offset ("Z", "+02:00") never moves the day.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    s = str(raw).strip()
    if not s:
        return None
    head = s.replace(" ", "T", 1).split("T", 1)[0]
    return date.fromisoformat(head)


def parse_local_datetime(raw: Any) -> datetime | None:
    """Parse a naive local datetime; an attached tz offset is dropped, not converted."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.replace(tzinfo=None)
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day)
    s = str(raw).strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1]
    return datetime.fromisoformat(s).replace(tzinfo=None)


def anchor_date(due_date: date | None, scheduled_time: datetime | None) -> date | None:
    """The date a recurrence steps from: due_date first, then scheduled_time's date."""
    if due_date is not None:
        return due_date
    if scheduled_time is not None:
        return scheduled_time.date()
    return None


def add_months(day: date, months: int, policy: MonthlyPolicy = MonthlyPolicy.CLAMP) -> date:
    total = day.month - 1 + months
    year = day.year + total // 12
    month = total % 12 + 1
    last = calendar.monthrange(year, month)[1]
    if day.day <= last:
        return date(year, month, day.day)
    if policy is MonthlyPolicy.CLAMP:
        return date(year, month, last)
    return date(year, month, last) + timedelta(days=day.day - last)


def step(
    day: date,
    recurrence: Recurrence,
    policy: MonthlyPolicy = MonthlyPolicy.CLAMP,
) -> date | None:
    """
    Advance `day` by one recurrence interval.

    None for non-recurring, and None when the result would fall past date.max
    (callers treat that as the end of the series).
    """
    delta = _FIXED_STEPS.get(recurrence)
    try:
        if delta is not None:
            return day + delta
        if recurrence is Recurrence.MONTHLY:
            return add_months(day, 1, policy)
    except (OverflowError, ValueError):
        return None
    return None


def exceeds_end(day: date, recurrence_end: date | None) -> bool:
    # recurrence_end is inclusive
    return recurrence_end is not None and day > recurrence_end


def with_time_of(day: date, scheduled_time: datetime | None) -> datetime | None:
    """Move `scheduled_time` onto `day`, keeping its time-of-day exactly."""
    if scheduled_time is None:
        return None
    return datetime.combine(day, scheduled_time.time())
