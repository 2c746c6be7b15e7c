"""Shared builders and CLI output helpers for the test suite."""

from __future__ import annotations

import datetime as dt
import re
from pathlib import Path
from typing import Any

from shiftmetrics.records.models import ActivityRecord, Shift

FIXTURES = Path(__file__).parent / "fixtures"
MINESITE = FIXTURES / "minesite"

_ANSI_RE = re.compile(r"\x1B\[[0-9;?]*[ -/]*[@-~]")


def make_shift(
    shift_id: int,
    day: str | dt.date,
    *,
    subject_id: int = 1,
    shift_type: str | None = "DS",
    totals: Any = None,
) -> Shift:
    return Shift(
        id=shift_id,
        date=day,
        subject_id=subject_id,
        shift_type=shift_type,
        totals=totals,
    )


def make_record(
    shift_id: int,
    activity: str,
    sub_activity: str = "",
    values: dict[str, Any] | None = None,
    *,
    loads: list[dict[str, Any]] | None = None,
    location: str | None = None,
) -> ActivityRecord:
    return ActivityRecord(
        shift_id=shift_id,
        activity=activity,
        sub_activity=sub_activity,
        values=values or {},
        loads=loads,
        location=location,
    )


def cli_text(result: Any) -> str:
    """Return CLI output with ANSI styling removed."""

    return _ANSI_RE.sub("", result.output or "")


__all__ = ["FIXTURES", "MINESITE", "make_shift", "make_record", "cli_text"]
