# tests/test_dates.py

from __future__ import annotations

from datetime import date, datetime

import pytest

from taskflow.recurrence.dates import (
    MonthlyPolicy,
    add_months,
    anchor_date,
    exceeds_end,
    parse_local_date,
    parse_local_datetime,
    step,
    with_time_of,
)
from taskflow.tasks.task_models import Recurrence


@pytest.mark.parametrize(
    "raw",
    ["2024-03-10", "2024-03-10T23:30:00", "2024-03-10 00:15", "2024-03-10T23:59:00Z", "2024-03-10T01:00:00+05:00"],
)
def test_parse_local_date_reads_calendar_day_only(raw: str) -> None:
    assert parse_local_date(raw) == date(2024, 3, 10)


def test_parse_local_date_passthrough_and_empty() -> None:
    assert parse_local_date(date(2024, 1, 1)) == date(2024, 1, 1)
    assert parse_local_date(datetime(2024, 1, 1, 22, 0)) == date(2024, 1, 1)
    assert parse_local_date(None) is None
    assert parse_local_date("  ") is None


def test_parse_local_datetime_drops_offset_without_converting() -> None:
    assert parse_local_datetime("2024-01-10T14:30:00+02:00") == datetime(2024, 1, 10, 14, 30)
    assert parse_local_datetime("2024-01-10T14:30:00Z") == datetime(2024, 1, 10, 14, 30)
    assert parse_local_datetime("") is None


def test_anchor_prefers_due_date() -> None:
    assert anchor_date(date(2024, 5, 1), datetime(2024, 6, 1, 9, 0)) == date(2024, 5, 1)
    assert anchor_date(None, datetime(2024, 6, 1, 9, 0)) == date(2024, 6, 1)
    assert anchor_date(None, None) is None


@pytest.mark.parametrize(
    ("recurrence", "expected"),
    [
        (Recurrence.DAILY, date(2024, 3, 1)),
        (Recurrence.WEEKLY, date(2024, 3, 7)),
        (Recurrence.BIWEEKLY, date(2024, 3, 14)),
        (Recurrence.MONTHLY, date(2024, 3, 29)),
    ],
)
def test_step_intervals(recurrence: Recurrence, expected: date) -> None:
    assert step(date(2024, 2, 29), recurrence) == expected


def test_step_none_is_not_recurring() -> None:
    assert step(date(2024, 2, 29), Recurrence.NONE) is None


def test_monthly_clamp_short_months() -> None:
    assert add_months(date(2024, 1, 31), 1, MonthlyPolicy.CLAMP) == date(2024, 2, 29)
    assert add_months(date(2023, 1, 31), 1, MonthlyPolicy.CLAMP) == date(2023, 2, 28)
    assert add_months(date(2024, 3, 31), 1, MonthlyPolicy.CLAMP) == date(2024, 4, 30)


def test_monthly_rollover_spills_into_next_month() -> None:
    assert add_months(date(2024, 1, 31), 1, MonthlyPolicy.ROLLOVER) == date(2024, 3, 2)
    assert add_months(date(2023, 1, 31), 1, MonthlyPolicy.ROLLOVER) == date(2023, 3, 3)
    assert add_months(date(2024, 3, 31), 1, MonthlyPolicy.ROLLOVER) == date(2024, 5, 1)


def test_monthly_crosses_year_boundary() -> None:
    assert step(date(2024, 12, 15), Recurrence.MONTHLY) == date(2025, 1, 15)


def test_monthly_policy_parse_defaults_to_clamp() -> None:
    assert MonthlyPolicy.parse("ROLLOVER") is MonthlyPolicy.ROLLOVER
    assert MonthlyPolicy.parse("nonsense") is MonthlyPolicy.CLAMP
    assert MonthlyPolicy.parse(None) is MonthlyPolicy.CLAMP


def test_end_date_is_inclusive() -> None:
    assert not exceeds_end(date(2024, 3, 1), date(2024, 3, 1))
    assert exceeds_end(date(2024, 3, 2), date(2024, 3, 1))
    assert not exceeds_end(date(2099, 1, 1), None)


def test_with_time_of_keeps_time_exactly() -> None:
    original = datetime(2024, 1, 10, 14, 30, 15, 250)
    assert with_time_of(date(2024, 1, 17), original) == datetime(2024, 1, 17, 14, 30, 15, 250)
    assert with_time_of(date(2024, 1, 17), None) is None


@pytest.mark.parametrize("recurrence", [Recurrence.DAILY, Recurrence.WEEKLY, Recurrence.BIWEEKLY, Recurrence.MONTHLY])
def test_step_past_the_last_representable_date_is_none(recurrence: Recurrence) -> None:
    assert step(date(9999, 12, 31), recurrence) is None
    assert step(date(9999, 12, 31), recurrence, MonthlyPolicy.ROLLOVER) is None
