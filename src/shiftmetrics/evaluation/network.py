"""Calendar-aligned subject-versus-peers comparison for one metric."""

from __future__ import annotations

import datetime as dt
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from shiftmetrics.core.errors import UnknownPeerError
from shiftmetrics.core.types import DateRange, iter_days
from shiftmetrics.evaluation.milestones import BestDay, best_day
from shiftmetrics.evaluation.rollup import filter_values

__all__ = [
    "RankBy",
    "TimelinePoint",
    "PeerTile",
    "RankRow",
    "NetworkBest",
    "NetworkComparison",
    "non_zero_average",
    "build_timeline",
    "rank_participants",
    "build_network_comparison",
]

DailyValues = Mapping[dt.date, float]


class RankBy(str, Enum):
    TOTAL = "total"
    AVERAGE = "average"
    BEST = "best"


@dataclass(frozen=True, slots=True)
class TimelinePoint:
    """One calendar day of the comparison; ``compare`` is set only for a compare peer."""

    date: dt.date
    subject: float
    peer_average: float
    peer_best: float
    compare: float | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "date": self.date.isoformat(),
            "user": self.subject,
            "network_avg": self.peer_average,
            "network_best": self.peer_best,
        }
        if self.compare is not None:
            payload["compare"] = self.compare
        return payload


@dataclass(frozen=True, slots=True)
class PeerTile:
    """One peer's figures next to the subject's own."""

    peer_id: int
    best: BestDay
    period_average: float
    period_total: float
    subject_best: BestDay
    subject_period_average: float
    subject_period_total: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "peer_id": self.peer_id,
            "them": {
                "best": self.best.to_dict(),
                "average": self.period_average,
                "total": self.period_total,
            },
            "you": {
                "best": self.subject_best.to_dict(),
                "average": self.subject_period_average,
                "total": self.subject_period_total,
            },
        }


@dataclass(frozen=True, slots=True)
class RankRow:
    rank: int
    participant_id: int
    value: float
    is_subject: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "rank": self.rank,
            "user_id": self.participant_id,
            "value": self.value,
            "is_subject": self.is_subject,
        }


@dataclass(frozen=True, slots=True)
class NetworkBest:
    total: float = 0.0
    date: dt.date | None = None
    peer_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "date": self.date.isoformat() if self.date else None,
            "user_id": self.peer_id,
        }


@dataclass(frozen=True, slots=True)
class NetworkComparison:
    """Everything the peer-comparison view renders for one metric and range."""

    subject_id: int
    date_range: DateRange
    axis_range: DateRange | None
    timeline: tuple[TimelinePoint, ...]
    subject_best: BestDay
    subject_period_total: float
    subject_period_average: float
    peer_ids: tuple[int, ...]
    tiles: tuple[PeerTile, ...]
    ranking: tuple[RankRow, ...]
    rank_by: RankBy
    network_best: NetworkBest
    compare_peer_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "range": self.date_range.to_dict(),
            "timeline": [point.to_dict() for point in self.timeline],
            "userBest": self.subject_best.to_dict(),
            "userTotal": self.subject_period_total,
            "userAverage": self.subject_period_average,
            "members": list(self.peer_ids),
            "tiles": [tile.to_dict() for tile in self.tiles],
            "rankBy": self.rank_by.value,
            "ranking": [row.to_dict() for row in self.ranking],
            "networkBest": self.network_best.to_dict(),
            "compare": self.compare_peer_id,
        }


def non_zero_average(values: Mapping[dt.date, float] | Sequence[float]) -> float:
    """Mean of the strictly positive values; ``0.0`` when there are none.

    Absent days never dilute the average:

    >>> non_zero_average([0.0, 6.0, 0.0])
    6.0
    """

    items = values.values() if isinstance(values, Mapping) else values
    positive = [value for value in items if value > 0]
    return sum(positive) / len(positive) if positive else 0.0


def _observed_span(series: Sequence[DailyValues]) -> tuple[dt.date | None, dt.date | None]:
    dates = [day for values in series for day in values]
    if not dates:
        return None, None
    return min(dates), max(dates)


def build_timeline(
    subject_values: DailyValues,
    peer_values: Mapping[int, DailyValues],
    axis: DateRange | None,
    *,
    compare_values: DailyValues | None = None,
) -> tuple[TimelinePoint, ...]:
    """Per-day subject value, peer average and peer best across the axis.

    Peers contribute to a day only when they have an entry for it, so days before a peer
    had data do not drag its average down.
    """

    if axis is None:
        return ()
    points = []
    for day in iter_days(axis.start, axis.end):
        present = [values[day] for values in peer_values.values() if day in values]
        points.append(
            TimelinePoint(
                date=day,
                subject=subject_values.get(day, 0.0),
                peer_average=sum(present) / len(present) if present else 0.0,
                peer_best=max(present) if present else 0.0,
                compare=(
                    compare_values.get(day, 0.0) if compare_values is not None else None
                ),
            )
        )
    return tuple(points)


def rank_participants(
    scores: Mapping[int, float],
    subject_id: int,
    *,
    top_n: int | None = None,
) -> tuple[RankRow, ...]:
    """Sort participants by score (descending, then id); the subject row is always kept."""

    ordered = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
    rows = [
        RankRow(rank=index, participant_id=pid, value=value, is_subject=pid == subject_id)
        for index, (pid, value) in enumerate(ordered, start=1)
    ]
    if top_n is None or top_n >= len(rows):
        return tuple(rows)
    kept = rows[: max(top_n, 0)]
    if not any(row.is_subject for row in kept):
        kept.extend(row for row in rows if row.is_subject)
    return tuple(kept)


def build_network_comparison(
    subject_id: int,
    subject_series: DailyValues,
    peer_series: Mapping[int, DailyValues],
    *,
    date_range: DateRange | None = None,
    compare_peer_id: int | None = None,
    subject_history: DailyValues | None = None,
    peer_histories: Mapping[int, DailyValues] | None = None,
    rank_by: RankBy = RankBy.TOTAL,
    top_n: int | None = None,
) -> NetworkComparison:
    """Compare one subject's daily values for a metric against each peer's.

    Parameters
    ----------
    subject_series, peer_series:
        Date → value for the requested range (days without shifts absent). A
        ``peer_series`` entry keyed by ``subject_id`` is ignored.
    date_range:
        Requested range. Unbounded ends are clamped to the observed data span.
    compare_peer_id:
        Optional peer shown in the ``compare`` column and left out of the peer
        average/best. Must be one of ``peer_series``.
    subject_history, peer_histories:
        Unbounded histories used for all-time bests; default to the period series.
    rank_by:
        Aggregation used to order the ranking table.
    top_n:
        Keep only the first ``top_n`` ranking rows (plus the subject's row).
    """

    window = date_range or DateRange()
    peer_series = {pid: values for pid, values in peer_series.items() if pid != subject_id}
    if compare_peer_id is not None and compare_peer_id not in peer_series:
        raise UnknownPeerError(
            f"Compare peer {compare_peer_id} is not one of the accepted connections"
        )
    subject_values = filter_values(subject_series, window)
    peers = {pid: filter_values(values, window) for pid, values in peer_series.items()}
    subject_history = subject_history if subject_history is not None else subject_series
    peer_histories = peer_histories or {}

    first, last = _observed_span([subject_values, *peers.values()])
    axis = window.clamp(first, last)
    compare_values = peers.get(compare_peer_id) if compare_peer_id is not None else None
    pooled = {pid: values for pid, values in peers.items() if pid != compare_peer_id}
    timeline = build_timeline(subject_values, pooled, axis, compare_values=compare_values)

    default_date = axis.start if axis is not None else window.start
    subject_best = best_day(subject_history, default_date=default_date)
    subject_total = sum(subject_values.values())
    subject_average = non_zero_average(subject_values)

    tiles: list[PeerTile] = []
    network_best = NetworkBest()
    for pid in sorted(peers):
        values = peers[pid]
        history = peer_histories.get(pid, peer_series[pid])
        best = best_day(history, default_date=default_date)
        if best.total > network_best.total:
            network_best = NetworkBest(best.total, best.date, pid)
        tiles.append(
            PeerTile(
                peer_id=pid,
                best=best,
                period_average=non_zero_average(values),
                period_total=sum(values.values()),
                subject_best=subject_best,
                subject_period_average=subject_average,
                subject_period_total=subject_total,
            )
        )

    scores = {subject_id: _score(rank_by, subject_total, subject_average, subject_best)}
    for tile in tiles:
        scores[tile.peer_id] = _score(rank_by, tile.period_total, tile.period_average, tile.best)

    return NetworkComparison(
        subject_id=subject_id,
        date_range=window,
        axis_range=axis,
        timeline=timeline,
        subject_best=subject_best,
        subject_period_total=subject_total,
        subject_period_average=subject_average,
        peer_ids=tuple(sorted(peers)),
        tiles=tuple(tiles),
        ranking=rank_participants(scores, subject_id, top_n=top_n),
        rank_by=rank_by,
        network_best=network_best,
        compare_peer_id=compare_peer_id,
    )


def _score(rank_by: RankBy, total: float, average: float, best: BestDay) -> float:
    if rank_by is RankBy.AVERAGE:
        return average
    if rank_by is RankBy.BEST:
        return best.total
    return total
