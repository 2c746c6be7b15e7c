"""Tabular views (pandas) over rollups, comparisons, and activity field totals."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import asdict
from typing import Any

import pandas as pd

from shiftmetrics.activities.decode import decode_fields
from shiftmetrics.activities.models import ActivityKind, HaulingFields
from shiftmetrics.activities.rules import classify_activity
from shiftmetrics.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from shiftmetrics.core.parsing import parse_optional
from shiftmetrics.evaluation.network import NetworkComparison
from shiftmetrics.evaluation.rollup import SubjectRollup
from shiftmetrics.records.models import ActivityRecord, Shift

__all__ = [
    "SHIFT_METRIC_COLUMNS",
    "DAILY_METRIC_COLUMNS",
    "TIMELINE_COLUMNS",
    "FIELD_ROLLUP_COLUMNS",
    "shift_dataframe",
    "daily_dataframe",
    "timeline_dataframe",
    "field_rollup",
    "field_rollup_dataframe",
]

SHIFT_METRIC_COLUMNS = [
    "date",
    "shift_id",
    "shift_type",
    "subject_id",
    "has_activity_detail",
]

DAILY_METRIC_COLUMNS = ["date"]

TIMELINE_COLUMNS = ["date", "subject", "peer_average", "peer_best", "compare"]

FIELD_ROLLUP_COLUMNS = ["activity", "sub_activity", "field", "value"]

FieldTotals = dict[str, dict[str, dict[str, float]]]


def shift_dataframe(rollup: SubjectRollup) -> pd.DataFrame:
    """Return one row per shift with every vocabulary metric as a column."""

    columns = SHIFT_METRIC_COLUMNS + list(rollup.daily.metric_names)
    if not rollup.shift_metrics:
        return pd.DataFrame(columns=columns)
    rows = [
        {
            "date": item.date,
            "shift_id": item.shift_id,
            "shift_type": item.shift_type.value if item.shift_type else None,
            "subject_id": item.subject_id,
            "has_activity_detail": item.has_activity_detail,
            **dict(item.values),
        }
        for item in rollup.shift_metrics
    ]
    return pd.DataFrame(rows).reindex(columns=columns)


def daily_dataframe(rollup: SubjectRollup) -> pd.DataFrame:
    """Return the daily series (dates with at least one shift) as a DataFrame."""

    columns = DAILY_METRIC_COLUMNS + list(rollup.daily.metric_names)
    if not len(rollup.daily):
        return pd.DataFrame(columns=columns)
    rows = [{"date": day, **dict(values)} for day, values in rollup.daily.days.items()]
    return pd.DataFrame(rows).reindex(columns=columns)


def timeline_dataframe(comparison: NetworkComparison) -> pd.DataFrame:
    """Return the comparison timeline with one row per calendar day."""

    if not comparison.timeline:
        return pd.DataFrame(columns=TIMELINE_COLUMNS)
    df = pd.DataFrame([asdict(point) for point in comparison.timeline])
    return df.reindex(columns=TIMELINE_COLUMNS)


def _add(totals: FieldTotals, activity: str, sub_activity: str, name: str, value: float) -> None:
    bucket = totals.setdefault(activity, {}).setdefault(sub_activity, {})
    bucket[name] = bucket.get(name, 0.0) + value


def _hauling_totals(fields: HaulingFields) -> dict[str, float]:
    """Display totals for one hauling record (distance and weight weighted by trucks)."""

    distance = max(fields.distance or 0.0, 0.0)
    if fields.load_weights:
        trucks = float(len(fields.load_weights))
        weight = sum(max(value, 0.0) for value in fields.load_weights if value is not None)
    else:
        trucks = max(fields.trucks or 0.0, 0.0)
        weight = trucks * max(fields.weight or 0.0, 0.0)
    return {
        "Total Trucks": trucks,
        "Total Distance": trucks * distance,
        "Total Weight": weight,
        "Total TKMS": weight * distance,
    }


def _record_totals(
    records: Iterable[ActivityRecord],
    config: EngineConfig,
) -> FieldTotals:
    totals: FieldTotals = {}
    for record in records:
        activity = record.activity or "Unknown"
        sub_activity = record.sub_activity or "All"
        kind = classify_activity(record.activity, record.sub_activity, config)
        if kind is ActivityKind.HAULING:
            fields = decode_fields(kind, record, config.aliases_for(kind))
            for name, value in _hauling_totals(fields).items():
                _add(totals, activity, sub_activity, name, value)
            continue
        for name, raw in record.values.items():
            value = parse_optional(raw)
            if value is not None:
                _add(totals, activity, sub_activity, str(name), value)
    return totals


def _stored_totals(shift: Shift) -> FieldTotals:
    totals: FieldTotals = {}
    for activity, subs in shift.totals.items():
        if not isinstance(subs, Mapping):
            continue
        for sub_activity, fields in subs.items():
            if not isinstance(fields, Mapping):
                continue
            for name, raw in fields.items():
                value = parse_optional(raw)
                if value is not None:
                    _add(totals, str(activity), str(sub_activity), str(name), value)
    return totals


def field_rollup(
    shifts: Sequence[Shift],
    activities_by_shift: Mapping[int, Sequence[ActivityRecord]] | None = None,
    *,
    config: EngineConfig | None = None,
) -> FieldTotals:
    """Sum numeric fields into ``{activity: {sub_activity: {field: total}}}``.

    Shifts with activity records are summed from the records (hauling reported as
    ``Total Trucks``/``Total Distance``/``Total Weight``/``Total TKMS``); shifts without
    records contribute their stored totals. Non-numeric fields are skipped.
    """

    cfg = config or DEFAULT_ENGINE_CONFIG
    activities_by_shift = activities_by_shift or {}
    merged: dict[str, dict[str, dict[str, float]]] = defaultdict(dict)
    for shift in shifts:
        records = activities_by_shift.get(shift.id, ())
        shift_totals = _record_totals(records, cfg) if records else _stored_totals(shift)
        for activity, subs in shift_totals.items():
            for sub_activity, fields in subs.items():
                for name, value in fields.items():
                    _add(merged, activity, sub_activity, name, value)
    return dict(merged)


def field_rollup_dataframe(rollup: Mapping[str, Mapping[str, Mapping[str, Any]]]) -> pd.DataFrame:
    """Flatten :func:`field_rollup` output into long form."""

    rows = [
        {"activity": activity, "sub_activity": sub_activity, "field": name, "value": value}
        for activity, subs in rollup.items()
        for sub_activity, fields in subs.items()
        for name, value in fields.items()
    ]
    if not rows:
        return pd.DataFrame(columns=FIELD_ROLLUP_COLUMNS)
    return pd.DataFrame(rows).reindex(columns=FIELD_ROLLUP_COLUMNS)
