"""Reduce one shift (stored aggregate + activity records) into a canonical metric map."""

from __future__ import annotations

import datetime as dt
import logging
import math
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from shiftmetrics.activities.rules import derive_contribution
from shiftmetrics.config import (
    DEFAULT_ENGINE_CONFIG,
    EngineConfig,
    StoredTotalRule,
    normalise_name,
)
from shiftmetrics.core.parsing import parse_quantity
from shiftmetrics.metrics.vocabulary import MetricKind
from shiftmetrics.records.models import ActivityRecord, Shift, ShiftType

__all__ = [
    "ReductionMode",
    "ShiftMetrics",
    "reduce_shift",
    "reduce_activity_detail",
    "reduce_stored_totals",
    "zero_metric_map",
]

logger = logging.getLogger(__name__)


class ReductionMode(str, Enum):
    """How a shift's metric map is computed.

    ``ACTIVITY_DETAIL`` derives metrics from the activity records (accurate distinct
    location counts). ``STORED_TOTALS`` flattens the shift's stored aggregate through the
    fallback name table (lower precision). ``AUTO`` uses activity detail whenever records
    are supplied.
    """

    AUTO = "auto"
    ACTIVITY_DETAIL = "activity_detail"
    STORED_TOTALS = "stored_totals"


@dataclass(frozen=True, slots=True)
class ShiftMetrics:
    """Complete canonical metric map for one shift."""

    shift_id: int
    date: dt.date
    shift_type: ShiftType | None
    subject_id: int
    values: Mapping[str, float]
    has_activity_detail: bool

    def metric(self, name: str) -> float:
        return self.values.get(name, 0.0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "shift_id": self.shift_id,
            "date": self.date.isoformat(),
            "shift_type": self.shift_type.value if self.shift_type else None,
            "subject_id": self.subject_id,
            "has_activity_detail": self.has_activity_detail,
            **dict(self.values),
        }


def zero_metric_map(config: EngineConfig | None = None) -> dict[str, float]:
    cfg = config or DEFAULT_ENGINE_CONFIG
    return {name: 0.0 for name in cfg.metric_names}


def _finalise(
    amounts: Mapping[str, float],
    locations: Mapping[str, set[str]],
    counts: Mapping[str, float],
    config: EngineConfig,
) -> dict[str, float]:
    """Turn accumulators into the complete, non-negative metric map."""

    values = zero_metric_map(config)
    for spec in config.metrics:
        if spec.kind is MetricKind.SUM:
            value = amounts.get(spec.name, 0.0) * spec.accumulator_scale
        elif spec.kind is MetricKind.DISTINCT:
            value = float(len(locations.get(spec.name, ()))) + counts.get(spec.name, 0.0)
        else:
            continue
        values[spec.name] = value if math.isfinite(value) and value > 0 else 0.0
    # Derived metrics are computed once, after every accumulator is final.
    for spec in config.metrics:
        if spec.kind is MetricKind.DERIVED:
            values[spec.name] = sum(values.get(name, 0.0) for name in spec.components)
    return values


def reduce_activity_detail(
    activities: Iterable[ActivityRecord],
    config: EngineConfig | None = None,
) -> dict[str, float]:
    """Sum every record's contribution; distinct-location sets become counts."""

    cfg = config or DEFAULT_ENGINE_CONFIG
    amounts: dict[str, float] = defaultdict(float)
    locations: dict[str, set[str]] = defaultdict(set)
    for record in activities:
        contribution = derive_contribution(record, cfg)
        for name, amount in contribution.amounts.items():
            amounts[name] += amount
        for name, keys in contribution.locations.items():
            locations[name].update(keys)
    return _finalise(amounts, locations, {}, cfg)


def _index_rules(rules: Sequence[StoredTotalRule]) -> dict[str, list[StoredTotalRule]]:
    index: dict[str, list[StoredTotalRule]] = defaultdict(list)
    for rule in rules:
        for field_name in rule.fields:
            index[field_name].append(rule)
    return index


def _field_maps(sub_totals: Mapping[str, Any], combined: set[str]) -> list[Mapping[str, Any]]:
    """Return the field maps below one activity key of a stored aggregate."""

    nested = [
        (normalise_name(key), value)
        for key, value in sub_totals.items()
        if isinstance(value, Mapping)
    ]
    flat = {key: value for key, value in sub_totals.items() if not isinstance(value, Mapping)}
    if len(nested) > 1:
        nested = [(key, value) for key, value in nested if key not in combined]
    maps: list[Mapping[str, Any]] = [value for _key, value in nested]
    if flat:
        maps.append(flat)
    return maps


def reduce_stored_totals(
    totals: Mapping[str, Any] | None,
    config: EngineConfig | None = None,
) -> dict[str, float]:
    """Flatten a stored ``{activity: {sub: {field: value}}}`` aggregate by name matching.

    Distinct-location metrics only receive a stored count field when one exists (for
    example ``Headings supported``); otherwise they stay at 0.
    """

    cfg = config or DEFAULT_ENGINE_CONFIG
    amounts: dict[str, float] = defaultdict(float)
    counts: dict[str, float] = defaultdict(float)
    if not isinstance(totals, Mapping):
        return zero_metric_map(cfg)
    rules = _index_rules(cfg.stored_totals)
    kinds = {spec.name: spec.kind for spec in cfg.metrics}
    combined = {normalise_name(key) for key in cfg.combined_sub_keys}
    for activity, sub_totals in totals.items():
        if not isinstance(sub_totals, Mapping):
            continue
        activity_key = normalise_name(activity)
        for fields in _field_maps(sub_totals, combined):
            for field_name, value in fields.items():
                for rule in rules.get(normalise_name(field_name), ()):
                    if rule.activities and activity_key not in rule.activities:
                        continue
                    target = counts if kinds.get(rule.metric) is MetricKind.DISTINCT else amounts
                    target[rule.metric] += parse_quantity(value)
    return _finalise(amounts, {}, counts, cfg)


def reduce_shift(
    shift: Shift,
    activities: Sequence[ActivityRecord] | None = None,
    *,
    mode: ReductionMode = ReductionMode.AUTO,
    config: EngineConfig | None = None,
) -> ShiftMetrics:
    """Compute the canonical metric map for ``shift``.

    Parameters
    ----------
    shift:
        Shift row (its ``totals`` feed the stored-totals path).
    activities:
        Activity records belonging to ``shift``.
    mode:
        Reduction path; ``AUTO`` falls back to stored totals only when no records are
        supplied. ``ShiftMetrics.has_activity_detail`` reports which path ran.
    config:
        Engine configuration; defaults to :data:`DEFAULT_ENGINE_CONFIG`.
    """

    cfg = config or DEFAULT_ENGINE_CONFIG
    records = list(activities or ())
    if mode is ReductionMode.AUTO:
        mode = ReductionMode.ACTIVITY_DETAIL if records else ReductionMode.STORED_TOTALS
    if mode is ReductionMode.ACTIVITY_DETAIL:
        values = reduce_activity_detail(records, cfg)
        detailed = True
    else:
        logger.debug("Shift %s reduced from stored totals", shift.id)
        values = reduce_stored_totals(shift.totals, cfg)
        detailed = False
    return ShiftMetrics(
        shift_id=shift.id,
        date=shift.date,
        shift_type=shift.shift_type,
        subject_id=shift.subject_id,
        values=values,
        has_activity_detail=detailed,
    )
