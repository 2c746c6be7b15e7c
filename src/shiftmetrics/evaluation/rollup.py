"""Daily rollup of per-shift metric maps."""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field

from shiftmetrics.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from shiftmetrics.core.types import DateRange
from shiftmetrics.evaluation.reducer import ReductionMode, ShiftMetrics, reduce_shift
from shiftmetrics.records.models import ActivityRecord, Shift, ShiftType

__all__ = ["DailySeries", "SubjectRollup", "build_daily_series", "filter_values"]


@dataclass(frozen=True, slots=True)
class DailySeries:
    """Date → metric map, sorted by date, one entry per date with at least one shift."""

    days: Mapping[dt.date, Mapping[str, float]] = field(default_factory=dict)
    metric_names: tuple[str, ...] = ()

    @classmethod
    def from_shift_metrics(
        cls,
        shift_metrics: Iterable[ShiftMetrics],
        metric_names: Sequence[str],
    ) -> DailySeries:
        days: dict[dt.date, dict[str, float]] = {}
        for metrics in shift_metrics:
            day = days.get(metrics.date)
            if day is None:
                day = {name: 0.0 for name in metric_names}
                days[metrics.date] = day
            for name in metric_names:
                day[name] += metrics.values.get(name, 0.0)
        ordered = {date: days[date] for date in sorted(days)}
        return cls(days=ordered, metric_names=tuple(metric_names))

    def __len__(self) -> int:
        return len(self.days)

    def __iter__(self) -> Iterator[dt.date]:
        return iter(self.days)

    @property
    def dates(self) -> tuple[dt.date, ...]:
        return tuple(self.days)

    @property
    def first_date(self) -> dt.date | None:
        return next(iter(self.days), None)

    @property
    def last_date(self) -> dt.date | None:
        return next(reversed(self.days), None) if self.days else None

    def metric(self, name: str) -> dict[dt.date, float]:
        """Ordered date → value mapping for one metric (absent days stay absent)."""

        return {date: values.get(name, 0.0) for date, values in self.days.items()}

    def total(self, name: str) -> float:
        return sum(values.get(name, 0.0) for values in self.days.values())


@dataclass(frozen=True, slots=True)
class SubjectRollup:
    """Per-shift and per-day metrics for one subject over one date range."""

    subject_id: int
    date_range: DateRange
    shift_metrics: tuple[ShiftMetrics, ...]
    daily: DailySeries

    @property
    def has_activity_detail(self) -> bool:
        """``True`` only when every shift was reduced from activity records."""

        return all(metrics.has_activity_detail for metrics in self.shift_metrics)

    def shift_values(self, name: str) -> list[tuple[ShiftType | None, float]]:
        return [(metrics.shift_type, metrics.metric(name)) for metrics in self.shift_metrics]


def build_daily_series(
    subject_id: int,
    shifts: Iterable[Shift],
    activities_by_shift: Mapping[int, Sequence[ActivityRecord]] | None = None,
    *,
    date_range: DateRange | None = None,
    mode: ReductionMode = ReductionMode.AUTO,
    config: EngineConfig | None = None,
) -> SubjectRollup:
    """Reduce and roll up the subject's shifts by the shift's own calendar date.

    Shifts owned by other subjects or dated outside ``date_range`` are ignored. Several
    shifts on one date all contribute to that date's entry.
    """

    cfg = config or DEFAULT_ENGINE_CONFIG
    window = date_range or DateRange()
    activities_by_shift = activities_by_shift or {}
    selected = sorted(
        (
            shift
            for shift in shifts
            if shift.subject_id == subject_id and window.contains(shift.date)
        ),
        key=lambda shift: (shift.date, shift.id),
    )
    shift_metrics = tuple(
        reduce_shift(shift, activities_by_shift.get(shift.id, ()), mode=mode, config=cfg)
        for shift in selected
    )
    daily = DailySeries.from_shift_metrics(shift_metrics, cfg.metric_names)
    return SubjectRollup(
        subject_id=subject_id,
        date_range=window,
        shift_metrics=shift_metrics,
        daily=daily,
    )


def filter_values(values: Mapping[dt.date, float], window: DateRange) -> dict[dt.date, float]:
    """Restrict a date → value mapping to ``window``."""

    return {date: value for date, value in values.items() if window.contains(date)}
