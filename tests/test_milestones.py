from __future__ import annotations

import datetime as dt

import pytest
from hypothesis import given, settings, strategies as st

from shiftmetrics.core.types import DateRange
from shiftmetrics.evaluation.milestones import (
    TIE,
    best_day,
    best_month,
    best_week,
    compute_milestone,
    compute_milestones,
    shift_compare,
)
from shiftmetrics.evaluation.rollup import build_daily_series
from shiftmetrics.records.models import ShiftType
from tests.helpers import make_record, make_shift

START = dt.date(2024, 5, 1)


def _series(values: list[float], start: dt.date = START) -> dict[dt.date, float]:
    return {start + dt.timedelta(days=offset): value for offset, value in enumerate(values)}


def test_plateau_best_day_and_week():
    values = _series([0, 0, 5, 5, 5, 5, 5, 0, 0, 0])
    day = best_day(values, default_date=START)
    assert day.total == 5
    assert day.date == dt.date(2024, 5, 3)

    week = best_week(values, default_date=START)
    assert week.total == 25
    assert (week.end - week.start).days == 6
    assert week.start <= dt.date(2024, 5, 3)
    assert week.end >= dt.date(2024, 5, 7)


def test_best_day_tie_keeps_first_date():
    values = _series([3, 7, 7, 1])
    assert best_day(values, default_date=START).date == dt.date(2024, 5, 2)


def test_all_zero_series_reports_first_observed_date():
    values = _series([0, 0], start=dt.date(2024, 5, 4))
    assert best_day(values, default_date=START).date == dt.date(2024, 5, 4)


def test_empty_series_uses_default_date():
    default = dt.date(2024, 1, 10)
    result = compute_milestone({}, default_date=default)
    assert result.best_day.total == 0
    assert result.best_day.date == default
    assert result.best_week.total == 0
    assert result.best_week.start == default
    assert result.best_week.end == dt.date(2024, 1, 16)
    assert result.best_month.total == 0
    assert result.best_month.month == "2024-01"
    assert result.shift_compare.winner == TIE


def test_best_week_counts_missing_days_as_zero():
    values = {
        dt.date(2024, 5, 1): 10.0,
        dt.date(2024, 5, 7): 10.0,
        dt.date(2024, 5, 8): 15.0,
    }
    week = best_week(values, default_date=START)
    assert week.total == 25
    assert week.start == dt.date(2024, 5, 2)
    assert week.end == dt.date(2024, 5, 8)


def test_short_series_is_padded_to_a_full_week():
    values = {dt.date(2024, 5, 2): 4.0, dt.date(2024, 5, 3): 6.0}
    week = best_week(values, default_date=START)
    assert week.total == 10
    assert week.start == dt.date(2024, 5, 2)
    assert week.end == dt.date(2024, 5, 8)


def test_best_month_groups_calendar_months():
    values = {
        dt.date(2024, 1, 31): 10.0,
        dt.date(2024, 2, 1): 6.0,
        dt.date(2024, 2, 29): 6.0,
        dt.date(2024, 3, 15): 10.0,
    }
    month = best_month(values, default_date=START)
    assert month.total == 12
    assert month.month == "2024-02"


@pytest.mark.parametrize(
    ("entries", "winner", "avg_day", "avg_night"),
    [
        ([(ShiftType.DAY, 10.0), (ShiftType.DAY, 0.0), (ShiftType.NIGHT, 4.0)], "DS", 5.0, 4.0),
        ([(ShiftType.NIGHT, 9.0), (ShiftType.DAY, 1.0), (None, 100.0)], "NS", 1.0, 9.0),
        ([(ShiftType.DAY, 2.0), (ShiftType.NIGHT, 2.0)], TIE, 2.0, 2.0),
        ([], TIE, 0.0, 0.0),
    ],
)
def test_shift_compare(entries, winner, avg_day, avg_night):
    result = shift_compare(entries)
    assert result.winner == winner
    assert result.avg_day == pytest.approx(avg_day)
    assert result.avg_night == pytest.approx(avg_night)
    assert result.to_dict()["winner"] == winner


def test_compute_milestones_from_rollup():
    shifts = [
        make_shift(1, "2024-03-01", shift_type="DS"),
        make_shift(2, "2024-03-01", shift_type="NS"),
        make_shift(3, "2024-03-20", shift_type="DS"),
        make_shift(4, "2024-04-02", shift_type="NS"),
    ]
    activities = {
        1: [make_record(1, "Hoisting", "", {"Ore Tonnes": 100})],
        2: [make_record(2, "Hoisting", "", {"Ore Tonnes": 50})],
        3: [make_record(3, "Hoisting", "", {"Ore Tonnes": 120})],
        4: [make_record(4, "Hoisting", "", {"Ore Tonnes": 300})],
    }
    rollup = build_daily_series(1, shifts, activities)
    window = DateRange(dt.date(2024, 3, 1), dt.date(2024, 3, 31))
    results = compute_milestones(rollup, metrics=["Ore tonnes hoisted"], date_range=window)
    result = results["Ore tonnes hoisted"]
    assert result.best_day.total == 150
    assert result.best_day.date == dt.date(2024, 3, 1)
    assert result.best_month.month == "2024-03"
    assert result.best_month.total == 270
    assert result.shift_compare.avg_day == pytest.approx(110)
    assert result.shift_compare.avg_night == pytest.approx(50)
    assert result.shift_compare.count_day == 2
    assert result.shift_compare.winner == "DS"
    assert result.to_dict()["bestDay"] == {"total": 150, "date": "2024-03-01"}


def test_compute_milestones_covers_every_metric_by_default():
    rollup = build_daily_series(1, [make_shift(1, "2024-03-01")])
    results = compute_milestones(rollup)
    assert tuple(results) == rollup.daily.metric_names


@settings(max_examples=50, deadline=None)
@given(st.lists(st.integers(min_value=0, max_value=10_000), max_size=40))
def test_best_week_is_never_below_best_day(raw):
    values = {
        START + dt.timedelta(days=offset): float(value)
        for offset, value in enumerate(raw)
        if value or offset % 3 == 0
    }
    day = best_day(values, default_date=START)
    week = best_week(values, default_date=START)
    assert week.total >= day.total
    assert (week.end - week.start).days == 6


@settings(max_examples=50, deadline=None)
@given(st.lists(st.floats(min_value=0, max_value=1e6, allow_nan=False), max_size=31))
def test_best_month_is_never_below_best_week_within_one_month(raw):
    values = _series(raw)
    week = best_week(values, default_date=START)
    month = best_month(values, default_date=START)
    assert month.total >= week.total or month.total == pytest.approx(week.total)
