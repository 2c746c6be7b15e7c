"""Request-level queries: subject summary, self time series, peer comparison."""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterable
from contextlib import nullcontext
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from shiftmetrics.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from shiftmetrics.core.errors import (
    MissingSubjectError,
    ShiftMetricsValueError,
    StoreReadError,
    UnknownPeerError,
)
from shiftmetrics.core.types import DateRange
from shiftmetrics.evaluation.aggregates import field_rollup
from shiftmetrics.evaluation.milestones import MilestoneResult, compute_milestones
from shiftmetrics.evaluation.network import NetworkComparison, RankBy, build_network_comparison
from shiftmetrics.evaluation.reducer import ReductionMode, ShiftMetrics
from shiftmetrics.evaluation.rollup import SubjectRollup, build_daily_series
from shiftmetrics.metrics.vocabulary import validate_metric
from shiftmetrics.records.models import ActivityRecord, Shift, ShiftWithActivities
from shiftmetrics.store.base import ShiftStore
from shiftmetrics.telemetry.query_logger import QueryTelemetryLogger

__all__ = ["SubjectSummary", "PeerComparison", "ShiftMetricsService"]

logger = logging.getLogger(__name__)

DateInput = str | dt.date | None


@dataclass(frozen=True, slots=True)
class SubjectSummary:
    """Per-shift metrics, activity field rollup, and milestones for one subject."""

    subject_id: int
    date_range: DateRange
    rows: tuple[ShiftMetrics, ...]
    rollup: dict[str, dict[str, dict[str, float]]]
    milestones: dict[str, MilestoneResult]
    subject_rollup: SubjectRollup

    @property
    def has_activity_detail(self) -> bool:
        return self.subject_rollup.has_activity_detail

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "range": self.date_range.to_dict(),
            "has_activity_detail": self.has_activity_detail,
            "rows": [row.to_dict() for row in self.rows],
            "rollup": self.rollup,
            "milestones": {
                "byMetric": {name: result.to_dict() for name, result in self.milestones.items()}
            },
        }


@dataclass(frozen=True, slots=True)
class PeerComparison:
    """Network comparison for one validated metric."""

    metric: str
    comparison: NetworkComparison

    def to_dict(self) -> dict[str, Any]:
        return {"metric": self.metric, **self.comparison.to_dict()}


class ShiftMetricsService:
    """Run engine queries against a read-only :class:`ShiftStore`.

    Client errors (unknown metric, missing subject, bad range, unknown compare peer) are
    raised before the store is read. Any store failure surfaces as
    :class:`StoreReadError` and no partial result is returned.
    """

    def __init__(
        self,
        store: ShiftStore,
        *,
        config: EngineConfig | None = None,
        telemetry_log: str | Path | None = None,
        mode: ReductionMode = ReductionMode.AUTO,
    ) -> None:
        self.store = store
        self.config = config or DEFAULT_ENGINE_CONFIG
        self.telemetry_log = Path(telemetry_log) if telemetry_log is not None else None
        self.mode = mode

    # ------------------------------------------------------------------ helpers
    def _telemetry(self, query: str, **kwargs: Any) -> Any:
        if self.telemetry_log is None:
            return nullcontext()
        return QueryTelemetryLogger(self.telemetry_log, query, **kwargs)

    @staticmethod
    def _subject(subject_id: Any) -> int:
        if subject_id is None or (isinstance(subject_id, str) and not subject_id.strip()):
            raise MissingSubjectError()
        try:
            return int(subject_id)
        except (TypeError, ValueError) as exc:
            raise MissingSubjectError(f"invalid subject id {subject_id!r}") from exc

    def _require_subject(self, subject_id: int) -> None:
        try:
            exists = self.store.subject_exists(subject_id)
        except Exception as exc:
            raise StoreReadError(f"Failed to resolve subject {subject_id}") from exc
        if not exists:
            raise MissingSubjectError(f"unknown subject {subject_id}")

    def _read(
        self, subject_id: int, window: DateRange
    ) -> tuple[list[Shift], dict[int, list[ActivityRecord]]]:
        try:
            shifts = list(self.store.fetch_shifts(subject_id, window))
            activities = (
                dict(self.store.fetch_activities([shift.id for shift in shifts])) if shifts else {}
            )
        except Exception as exc:
            raise StoreReadError(f"Failed to read shifts for subject {subject_id}") from exc
        return shifts, activities

    def _rollup(
        self,
        subject_id: int,
        window: DateRange,
        *,
        records: tuple[list[Shift], dict[int, list[ActivityRecord]]] | None = None,
    ) -> SubjectRollup:
        shifts, activities = records if records is not None else self._read(subject_id, window)
        return build_daily_series(
            subject_id,
            shifts,
            activities,
            date_range=window,
            mode=self.mode,
            config=self.config,
        )

    # ------------------------------------------------------------------ queries
    def subject_summary(
        self,
        caller_id: Any,
        *,
        subject_id: Any = None,
        start: DateInput = None,
        end: DateInput = None,
    ) -> SubjectSummary:
        """Summarise a subject (the caller unless ``subject_id`` overrides it)."""

        subject = self._subject(subject_id if subject_id is not None else caller_id)
        window = DateRange.from_strings(start, end)
        with self._telemetry(
            "subject_summary",
            subject_id=subject,
            date_range=window.to_dict(),
            context={"caller_id": caller_id},
        ) as telemetry:
            self._require_subject(subject)
            shifts, activities = self._read(subject, window)
            rollup = self._rollup(subject, window, records=(shifts, activities))
            summary = SubjectSummary(
                subject_id=subject,
                date_range=window,
                rows=rollup.shift_metrics,
                rollup=field_rollup(shifts, activities, config=self.config),
                milestones=compute_milestones(rollup, date_range=window),
                subject_rollup=rollup,
            )
            logger.debug(
                "Subject %s summary: %d shifts over %d days",
                subject,
                len(rollup.shift_metrics),
                len(rollup.daily),
            )
            if telemetry is not None:
                telemetry.finalize(
                    counts={"shifts": len(rollup.shift_metrics), "days": len(rollup.daily)}
                )
        return summary

    def self_time_series(
        self,
        caller_id: Any,
        *,
        start: DateInput = None,
        end: DateInput = None,
    ) -> list[ShiftWithActivities]:
        """Return the caller's raw shifts with their activity records."""

        subject = self._subject(caller_id)
        window = DateRange.from_strings(start, end)
        with self._telemetry(
            "self_time_series", subject_id=subject, date_range=window.to_dict()
        ) as telemetry:
            self._require_subject(subject)
            shifts, activities = self._read(subject, window)
            series = [
                ShiftWithActivities(shift, list(activities.get(shift.id, ())))
                for shift in shifts
            ]
            if telemetry is not None:
                telemetry.finalize(
                    counts={
                        "shifts": len(series),
                        "activities": sum(len(item.activities) for item in series),
                    }
                )
        return series

    def peer_comparison(
        self,
        caller_id: Any,
        metric: str,
        peer_ids: Iterable[Any],
        *,
        start: DateInput = None,
        end: DateInput = None,
        compare_peer_id: Any = None,
        rank_by: RankBy | str = RankBy.TOTAL,
        top_n: int | None = None,
    ) -> PeerComparison:
        """Compare the caller against the resolved peer list for one metric."""

        canonical = validate_metric(metric, self.config.metrics)
        subject = self._subject(caller_id)
        window = DateRange.from_strings(start, end)
        rank = _rank_by(rank_by)
        peers = _unique_peers(peer_ids, exclude=subject)
        compare = _peer_id(compare_peer_id) if compare_peer_id is not None else None
        if compare is not None and compare not in peers:
            raise UnknownPeerError(
                f"Compare peer {compare} is not one of the accepted connections"
            )

        with self._telemetry(
            "peer_comparison",
            subject_id=subject,
            metric=canonical,
            date_range=window.to_dict(),
            context={"peers": len(peers), "compare": compare, "rank_by": rank.value},
        ) as telemetry:
            self._require_subject(subject)
            # All-time bests need the unbounded history; the period view is filtered from it.
            unbounded = DateRange()
            subject_history = self._rollup(subject, unbounded).daily.metric(canonical)
            peer_histories = {
                pid: self._rollup(pid, unbounded).daily.metric(canonical) for pid in peers
            }
            comparison = build_network_comparison(
                subject,
                subject_history,
                peer_histories,
                date_range=window,
                compare_peer_id=compare,
                subject_history=subject_history,
                peer_histories=peer_histories,
                rank_by=rank,
                top_n=top_n,
            )
            if telemetry is not None:
                telemetry.finalize(
                    counts={"peers": len(peers), "timeline_days": len(comparison.timeline)}
                )
        return PeerComparison(metric=canonical, comparison=comparison)


def _peer_id(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise UnknownPeerError(f"invalid peer id {value!r}") from exc


def _unique_peers(peer_ids: Iterable[Any], *, exclude: int) -> tuple[int, ...]:
    peers: list[int] = []
    for value in peer_ids:
        pid = _peer_id(value)
        if pid != exclude and pid not in peers:
            peers.append(pid)
    return tuple(peers)


def _rank_by(value: RankBy | str) -> RankBy:
    try:
        return RankBy(str(value).strip().lower()) if not isinstance(value, RankBy) else value
    except ValueError as exc:
        allowed = ", ".join(item.value for item in RankBy)
        raise ShiftMetricsValueError(f"Unknown rank_by '{value}'. Allowed: {allowed}") from exc
