"""CLI helper utilities for shiftmetrics."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler

from shiftmetrics.core.errors import ShiftMetricsValueError, StoreReadError
from shiftmetrics.evaluation.network import RankBy
from shiftmetrics.store.base import InMemoryShiftStore, ShiftStore
from shiftmetrics.store.sqlite_store import SQLiteShiftStore

SQLITE_SUFFIXES = {".db", ".sqlite", ".sqlite3"}


def configure_logging(console: Console, *, verbose: bool = False) -> None:
    """Route engine loggers through rich; ``verbose`` switches to DEBUG."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=False)],
        force=True,
    )


def open_store(dataset: Path) -> ShiftStore:
    """Open a dataset directory/``dataset.yaml`` or a SQLite database as a store.

    Unreadable dataset tables raise :class:`StoreReadError`.
    """

    if not dataset.exists():
        raise typer.BadParameter(f"Dataset not found: {dataset}")
    if dataset.is_file() and dataset.suffix.lower() in SQLITE_SUFFIXES:
        return SQLiteShiftStore(dataset)
    try:
        return InMemoryShiftStore.from_dataset(dataset)
    except ShiftMetricsValueError:
        raise
    except Exception as exc:
        raise StoreReadError(f"Failed to load dataset {dataset}") from exc


def parse_rank_by(value: str) -> RankBy:
    try:
        return RankBy(value.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(item.value for item in RankBy)
        raise typer.BadParameter(f"--rank-by must be one of: {allowed}") from exc


def format_number(value: float) -> str:
    if float(value).is_integer():
        return f"{value:,.0f}"
    return f"{value:,.2f}"


def write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")


__all__ = [
    "configure_logging",
    "open_store",
    "parse_rank_by",
    "format_number",
    "write_json",
]
