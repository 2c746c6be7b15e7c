"""Personal-best milestones: best day, best trailing 7-day window, best month, DS vs NS."""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from shiftmetrics.core.types import MAX_DATE, DateRange, iter_days
from shiftmetrics.evaluation.rollup import SubjectRollup, filter_values
from shiftmetrics.records.models import ShiftType

__all__ = [
    "WEEK_DAYS",
    "BestDay",
    "BestWeek",
    "BestMonth",
    "ShiftCompare",
    "MilestoneResult",
    "best_day",
    "best_week",
    "best_month",
    "shift_compare",
    "compute_milestone",
    "compute_milestones",
]

WEEK_DAYS = 7

TIE = "TIE"


@dataclass(frozen=True, slots=True)
class BestDay:
    total: float
    date: dt.date

    def to_dict(self) -> dict[str, Any]:
        return {"total": self.total, "date": self.date.isoformat()}


@dataclass(frozen=True, slots=True)
class BestWeek:
    total: float
    start: dt.date
    end: dt.date

    def to_dict(self) -> dict[str, Any]:
        return {"total": self.total, "start": self.start.isoformat(), "end": self.end.isoformat()}


@dataclass(frozen=True, slots=True)
class BestMonth:
    total: float
    month: str

    def to_dict(self) -> dict[str, Any]:
        return {"total": self.total, "month": self.month}


@dataclass(frozen=True, slots=True)
class ShiftCompare:
    """Average per-shift value for day (DS) versus night (NS) shifts."""

    winner: str
    avg_day: float
    avg_night: float
    count_day: int
    count_night: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "winner": self.winner,
            "avgDS": self.avg_day,
            "avgNS": self.avg_night,
            "countDS": self.count_day,
            "countNS": self.count_night,
        }


@dataclass(frozen=True, slots=True)
class MilestoneResult:
    best_day: BestDay
    best_week: BestWeek
    best_month: BestMonth
    shift_compare: ShiftCompare

    def to_dict(self) -> dict[str, Any]:
        return {
            "bestDay": self.best_day.to_dict(),
            "bestWeek": self.best_week.to_dict(),
            "bestMonth": self.best_month.to_dict(),
            "shiftCompare": self.shift_compare.to_dict(),
        }


def _shift_days(day: dt.date, days: int) -> dt.date:
    if (MAX_DATE - day).days < days:
        return MAX_DATE
    return day + dt.timedelta(days=days)


def _month_key(day: dt.date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def _day_axis(values: Mapping[dt.date, float], *, min_days: int = 1) -> list[dt.date]:
    """Contiguous calendar axis from the first to the last observed date.

    The axis is padded forward to ``min_days`` so short series still form a full window.
    """

    if not values:
        return []
    first = min(values)
    last = max(max(values), _shift_days(first, min_days - 1))
    return list(iter_days(first, last))


def best_day(values: Mapping[dt.date, float], *, default_date: dt.date) -> BestDay:
    """Largest single-day value; the earliest date wins ties."""

    best = BestDay(0.0, default_date)
    for day in sorted(values):
        value = values[day]
        if value > best.total:
            best = BestDay(value, day)
    if values and best.total == 0.0:
        best = BestDay(0.0, min(values))
    return best


def best_week(values: Mapping[dt.date, float], *, default_date: dt.date) -> BestWeek:
    """Best trailing 7-day sum over the contiguous day axis (missing days count as 0)."""

    axis = _day_axis(values, min_days=WEEK_DAYS)
    if not axis:
        return BestWeek(0.0, default_date, _shift_days(default_date, WEEK_DAYS - 1))
    best = BestWeek(0.0, axis[0], axis[min(WEEK_DAYS, len(axis)) - 1])
    window = 0.0
    for index, day in enumerate(axis):
        window += values.get(day, 0.0)
        if index >= WEEK_DAYS:
            window -= values.get(axis[index - WEEK_DAYS], 0.0)
        if index >= WEEK_DAYS - 1 and window > best.total:
            best = BestWeek(window, axis[index - WEEK_DAYS + 1], day)
    return best


def best_month(values: Mapping[dt.date, float], *, default_date: dt.date) -> BestMonth:
    """Largest ``YYYY-MM`` total; the earliest month wins ties."""

    totals: dict[str, float] = {}
    for day in sorted(values):
        key = _month_key(day)
        totals[key] = totals.get(key, 0.0) + values[day]
    best = BestMonth(0.0, next(iter(totals), _month_key(default_date)))
    for month, total in totals.items():
        if total > best.total:
            best = BestMonth(total, month)
    return best


def shift_compare(shift_values: Iterable[tuple[ShiftType | None, float]]) -> ShiftCompare:
    """Compare average per-shift values; shifts without a DS/NS tag are ignored."""

    sum_day = sum_night = 0.0
    count_day = count_night = 0
    for shift_type, value in shift_values:
        if shift_type is ShiftType.DAY:
            sum_day += value
            count_day += 1
        elif shift_type is ShiftType.NIGHT:
            sum_night += value
            count_night += 1
    avg_day = sum_day / count_day if count_day else 0.0
    avg_night = sum_night / count_night if count_night else 0.0
    if avg_day > avg_night:
        winner = ShiftType.DAY.value
    elif avg_night > avg_day:
        winner = ShiftType.NIGHT.value
    else:
        winner = TIE
    return ShiftCompare(winner, avg_day, avg_night, count_day, count_night)


def compute_milestone(
    daily_values: Mapping[dt.date, float],
    shift_values: Iterable[tuple[ShiftType | None, float]] = (),
    *,
    default_date: dt.date,
) -> MilestoneResult:
    """Compute the milestone result for one metric's daily series.

    Parameters
    ----------
    daily_values:
        Date → value for dates with at least one shift. Absent dates count as 0.
    shift_values:
        ``(shift_type, value)`` per shift for the day/night comparison.
    default_date:
        Date reported when the series is empty (the first date of the requested range).
    """

    return MilestoneResult(
        best_day=best_day(daily_values, default_date=default_date),
        best_week=best_week(daily_values, default_date=default_date),
        best_month=best_month(daily_values, default_date=default_date),
        shift_compare=shift_compare(shift_values),
    )


def compute_milestones(
    rollup: SubjectRollup,
    *,
    metrics: Sequence[str] | None = None,
    date_range: DateRange | None = None,
) -> dict[str, MilestoneResult]:
    """Milestone result per metric (every vocabulary metric by default)."""

    window = date_range or rollup.date_range
    names = tuple(metrics) if metrics is not None else rollup.daily.metric_names
    shifts = [item for item in rollup.shift_metrics if window.contains(item.date)]
    results: dict[str, MilestoneResult] = {}
    for name in names:
        daily_values = filter_values(rollup.daily.metric(name), window)
        shift_values = [(item.shift_type, item.metric(name)) for item in shifts]
        results[name] = compute_milestone(daily_values, shift_values, default_date=window.start)
    return results
