"""Context manager for capturing per-query telemetry."""

from __future__ import annotations

import time
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping
from uuid import uuid4

from .jsonl import append_jsonl


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass(slots=True)
class QueryTelemetryLogger(AbstractContextManager["QueryTelemetryLogger"]):
    """Record one JSONL line per engine query.

    Parameters
    ----------
    log_path:
        JSONL path where query records are appended.
    query:
        Query name (``"subject_summary"``, ``"self_time_series"``, ``"peer_comparison"``).
    subject_id:
        Resolved subject the query ran for.
    metric:
        Metric name for metric-scoped queries.
    date_range:
        ``{"from": ..., "to": ...}`` mapping of the requested range.
    context:
        Additional metadata (caller id, peer count, reduction path).
    """

    log_path: Path
    query: str
    subject_id: int | None = None
    metric: str | None = None
    date_range: Mapping[str, Any] | None = None
    context: Mapping[str, Any] | None = None
    schema_version: str = "1.0"
    query_id: str = field(default_factory=lambda: uuid4().hex, init=False)
    _start_time: float = field(default=0.0, init=False)
    _start_timestamp: str | None = field(default=None, init=False)
    _closed: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        self.log_path = Path(self.log_path)

    def __enter__(self) -> "QueryTelemetryLogger":
        self._start_time = time.perf_counter()
        self._start_timestamp = _iso_now()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type:
            self._close(status="error", counts=None, error=repr(exc))
            return False
        self._close(status="ok", counts=None, error=None)
        return False

    def elapsed(self) -> float:
        """Return the elapsed wall-clock seconds since the query started."""
        return time.perf_counter() - self._start_time

    def finalize(
        self,
        *,
        status: str = "ok",
        counts: Mapping[str, int] | None = None,
        error: str | None = None,
    ) -> None:
        """Write the terminal query record (result counts such as shifts and peers)."""
        self._close(status=status, counts=counts, error=error)

    def _close(
        self,
        *,
        status: str,
        counts: Mapping[str, int] | None,
        error: str | None,
    ) -> None:
        if self._closed:
            return
        duration = self.elapsed() if self._start_time else 0.0
        record = {
            "record_type": "query",
            "schema_version": self.schema_version,
            "query_id": self.query_id,
            "query": self.query,
            "subject_id": self.subject_id,
            "metric": self.metric,
            "range": dict(self.date_range or {}),
            "status": status,
            "counts": dict(counts or {}),
            "context": dict(self.context or {}),
            "error": error,
            "started_at": self._start_timestamp,
            "finished_at": _iso_now(),
            "duration_seconds": round(duration, 3),
        }
        append_jsonl(self.log_path, record)
        self._closed = True


__all__ = ["QueryTelemetryLogger"]
