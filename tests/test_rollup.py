from __future__ import annotations

import datetime as dt

import pytest
from hypothesis import given, settings, strategies as st

from shiftmetrics.core.types import DateRange
from shiftmetrics.evaluation.reducer import reduce_shift
from shiftmetrics.evaluation.rollup import build_daily_series
from tests.helpers import make_record, make_shift


def test_two_ground_support_records_on_one_date():
    shifts = [
        make_shift(1, "2024-03-01", shift_type="DS"),
        make_shift(2, "2024-03-01", shift_type="NS"),
    ]
    first = {"No. of Bolts": 10, "Bolt Length": "2.4m"}
    second = {"No. of Bolts": 5, "Bolt Length": "1.8m"}
    activities = {
        1: [make_record(1, "Development", "Ground Support", first)],
        2: [make_record(2, "Development", "Ground Support", second)],
    }
    rollup = build_daily_series(1, shifts, activities)
    assert len(rollup.daily) == 1
    assert rollup.daily.metric("GS Drillm") == {dt.date(2024, 3, 1): pytest.approx(33)}
    assert rollup.daily.total("GS Drillm") == pytest.approx(33)


def test_rollup_filters_subject_and_range_and_omits_empty_days():
    shifts = [
        make_shift(1, "2024-03-01"),
        make_shift(2, "2024-03-05"),
        make_shift(3, "2024-03-09"),
        make_shift(4, "2024-03-05", subject_id=2),
    ]
    activities = {
        shift.id: [make_record(shift.id, "Hoisting", "", {"Ore Tonnes": 10})] for shift in shifts
    }
    window = DateRange(dt.date(2024, 3, 1), dt.date(2024, 3, 5))
    rollup = build_daily_series(1, shifts, activities, date_range=window)
    assert rollup.daily.dates == (dt.date(2024, 3, 1), dt.date(2024, 3, 5))
    assert rollup.daily.total("Ore tonnes hoisted") == pytest.approx(20)
    assert [item.shift_id for item in rollup.shift_metrics] == [1, 2]
    assert rollup.has_activity_detail


def test_rollup_is_idempotent():
    shifts = [make_shift(1, "2024-03-01"), make_shift(2, "2024-03-02")]
    activities = {1: [make_record(1, "Charging", "", {"Charge kg": 999})]}
    first = build_daily_series(1, shifts, activities)
    second = build_daily_series(1, shifts, activities)
    assert first.daily == second.daily
    assert first.shift_metrics == second.shift_metrics
    assert not first.has_activity_detail


@settings(max_examples=25, deadline=None)
@given(
    st.lists(
        st.tuples(
            st.integers(min_value=0, max_value=20),
            st.floats(min_value=0, max_value=1e6, allow_nan=False),
        ),
        max_size=30,
    )
)
def test_daily_value_equals_sum_of_shift_values(entries):
    start = dt.date(2024, 1, 1)
    shifts = []
    activities = {}
    for index, (offset, ore) in enumerate(entries, start=1):
        shifts.append(make_shift(index, start + dt.timedelta(days=offset)))
        activities[index] = [make_record(index, "Hoisting", "", {"Ore Tonnes": ore})]
    rollup = build_daily_series(1, shifts, activities)
    for day, value in rollup.daily.metric("Ore tonnes hoisted").items():
        expected = sum(
            reduce_shift(shift, activities[shift.id]).metric("Ore tonnes hoisted")
            for shift in shifts
            if shift.date == day
        )
        assert value == pytest.approx(expected)
    assert rollup.daily.total("Ore tonnes hoisted") == pytest.approx(
        sum(ore for _offset, ore in entries)
    )
