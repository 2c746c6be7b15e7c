"""Shift/activity input contracts and dataset loaders."""

from .loaders import ShiftDataset, load_dataset
from .models import ActivityRecord, Shift, ShiftType, ShiftWithActivities

__all__ = [
    "ActivityRecord",
    "Shift",
    "ShiftType",
    "ShiftWithActivities",
    "ShiftDataset",
    "load_dataset",
]
