"""Dataset loading utilities (YAML metadata + CSV tables)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import pandas as pd
import yaml
from pydantic import TypeAdapter

from shiftmetrics.core.errors import ShiftMetricsValueError
from shiftmetrics.records.models import ActivityRecord, Shift

__all__ = ["ShiftDataset", "load_dataset", "read_csv", "DATASET_FILENAME"]

DATASET_FILENAME = "dataset.yaml"

_SHIFT_COLUMNS = {"user_id": "subject_id", "dn": "shift_type", "totals_json": "totals"}
_ACTIVITY_COLUMNS = {"payload_json": "payload"}


@dataclass(slots=True)
class ShiftDataset:
    """In-memory snapshot of subjects, accepted connections, shifts and activity records."""

    name: str
    subjects: dict[int, str] = field(default_factory=dict)
    connections: dict[int, tuple[int, ...]] = field(default_factory=dict)
    shifts: list[Shift] = field(default_factory=list)
    activities: list[ActivityRecord] = field(default_factory=list)


def read_csv(path: Path) -> pd.DataFrame:
    """Load a CSV file as text columns; blank cells become empty strings."""
    return pd.read_csv(path, dtype=str, keep_default_na=False)


def _as_optional_string(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if pd.isna(cast("Any", value)):
        return None
    return str(value)


def _clean_rows(df: pd.DataFrame, renames: dict[str, str]) -> list[dict[str, Any]]:
    rows = []
    for raw in df.rename(columns=renames).to_dict("records"):
        row = {str(key): _as_optional_string(value) for key, value in raw.items()}
        rows.append({key: value for key, value in row.items() if value is not None})
    return rows


def _activity_records(rows: list[dict[str, Any]]) -> list[ActivityRecord]:
    records = []
    for row in rows:
        if "payload" in row:
            records.append(
                ActivityRecord.from_payload(
                    int(row["shift_id"]),
                    row.get("activity"),
                    row.get("sub_activity"),
                    row["payload"],
                )
            )
        else:
            records.append(ActivityRecord.model_validate(row))
    return records


def _parse_subjects(raw: Any) -> dict[int, str]:
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return {int(key): str(value) for key, value in raw.items()}
    subjects: dict[int, str] = {}
    for entry in raw:
        if isinstance(entry, dict):
            subjects[int(entry["id"])] = str(entry.get("name") or entry["id"])
        else:
            subjects[int(entry)] = str(entry)
    return subjects


def _parse_connections(raw: Any) -> dict[int, tuple[int, ...]]:
    """Accept ``{subject: [peers]}`` or a list of ``[a, b]`` pairs (symmetric)."""

    if raw is None:
        return {}
    links: dict[int, set[int]] = {}
    if isinstance(raw, dict):
        for key, peers in raw.items():
            for peer in peers or ():
                links.setdefault(int(key), set()).add(int(peer))
                links.setdefault(int(peer), set()).add(int(key))
    else:
        for pair in raw:
            first, second = (int(item) for item in pair)
            links.setdefault(first, set()).add(second)
            links.setdefault(second, set()).add(first)
    return {key: tuple(sorted(peers - {key})) for key, peers in links.items()}


def load_dataset(path: str | Path) -> ShiftDataset:
    """Load a dataset from a ``dataset.yaml`` file (or the directory containing one).

    The YAML names the dataset, lists ``subjects`` and accepted ``connections``, and points
    at ``data.shifts`` / ``data.activities`` CSV tables. Shift rows use the store column
    names (``id,user_id,date,dn,totals_json``). Activity rows either carry the stored
    ``payload_json`` envelope or separate ``values``/``loads``/``location`` columns with
    JSON text.
    """

    yaml_path = Path(path)
    if yaml_path.is_dir():
        yaml_path = yaml_path / DATASET_FILENAME
    base_path = yaml_path.resolve()
    with base_path.open("r", encoding="utf-8") as handle:
        meta = yaml.safe_load(handle) or {}
    if not isinstance(meta, dict):
        raise ShiftMetricsValueError(f"Dataset metadata {base_path} must be a mapping")
    root = base_path.parent
    data_section = meta.get("data", {})

    def require(name: str) -> Path:
        if name not in data_section:
            raise ShiftMetricsValueError(f"Dataset {base_path} is missing data.{name}")
        candidate = root / data_section[name]
        if not candidate.exists():
            raise FileNotFoundError(candidate)
        return candidate

    shifts = TypeAdapter(list[Shift]).validate_python(
        _clean_rows(read_csv(require("shifts")), _SHIFT_COLUMNS)
    )
    activities: list[ActivityRecord] = []
    if "activities" in data_section:
        activities = _activity_records(
            _clean_rows(read_csv(require("activities")), _ACTIVITY_COLUMNS)
        )

    subjects = _parse_subjects(meta.get("subjects"))
    for shift in shifts:
        subjects.setdefault(shift.subject_id, str(shift.subject_id))

    return ShiftDataset(
        name=str(meta.get("name") or base_path.parent.name),
        subjects=subjects,
        connections=_parse_connections(meta.get("connections")),
        shifts=shifts,
        activities=activities,
    )
