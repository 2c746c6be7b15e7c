"""Read-only shift store protocol and the in-memory implementation."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from shiftmetrics.core.types import DateRange
from shiftmetrics.records.loaders import ShiftDataset, load_dataset
from shiftmetrics.records.models import ActivityRecord, Shift

__all__ = ["ShiftStore", "InMemoryShiftStore"]


@runtime_checkable
class ShiftStore(Protocol):
    """What the engine reads from the persistent store."""

    def subject_exists(self, subject_id: int) -> bool: ...

    def fetch_shifts(self, subject_id: int, date_range: DateRange) -> list[Shift]: ...

    def fetch_activities(self, shift_ids: Sequence[int]) -> dict[int, list[ActivityRecord]]: ...

    def accepted_peers(self, subject_id: int) -> tuple[int, ...]: ...


class InMemoryShiftStore:
    """Store backed by plain model lists (datasets, tests)."""

    def __init__(
        self,
        shifts: Iterable[Shift] = (),
        activities: Iterable[ActivityRecord] = (),
        *,
        subjects: Iterable[int] | None = None,
        connections: Mapping[int, Sequence[int]] | None = None,
    ) -> None:
        self._shifts = sorted(shifts, key=lambda shift: (shift.date, shift.id))
        self._activities: dict[int, list[ActivityRecord]] = defaultdict(list)
        for record in activities:
            self._activities[record.shift_id].append(record)
        known = set(subjects or ())
        known.update(shift.subject_id for shift in self._shifts)
        self._subjects = known
        self._connections = {
            int(key): tuple(int(peer) for peer in peers)
            for key, peers in (connections or {}).items()
        }

    @classmethod
    def from_dataset(cls, dataset: ShiftDataset | str | Path) -> InMemoryShiftStore:
        if not isinstance(dataset, ShiftDataset):
            dataset = load_dataset(dataset)
        return cls(
            dataset.shifts,
            dataset.activities,
            subjects=dataset.subjects,
            connections=dataset.connections,
        )

    def subject_exists(self, subject_id: int) -> bool:
        return subject_id in self._subjects

    def fetch_shifts(self, subject_id: int, date_range: DateRange) -> list[Shift]:
        return [
            shift
            for shift in self._shifts
            if shift.subject_id == subject_id and date_range.contains(shift.date)
        ]

    def fetch_activities(self, shift_ids: Sequence[int]) -> dict[int, list[ActivityRecord]]:
        return {
            shift_id: list(self._activities[shift_id])
            for shift_id in shift_ids
            if shift_id in self._activities
        }

    def accepted_peers(self, subject_id: int) -> tuple[int, ...]:
        return self._connections.get(subject_id, ())
