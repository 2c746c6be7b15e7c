"""Shift reduction, daily rollups, milestones, and network comparisons."""

from .aggregates import (
    DAILY_METRIC_COLUMNS,
    FIELD_ROLLUP_COLUMNS,
    SHIFT_METRIC_COLUMNS,
    TIMELINE_COLUMNS,
    daily_dataframe,
    field_rollup,
    field_rollup_dataframe,
    shift_dataframe,
    timeline_dataframe,
)
from .milestones import (
    BestDay,
    BestMonth,
    BestWeek,
    MilestoneResult,
    ShiftCompare,
    compute_milestone,
    compute_milestones,
)
from .network import (
    NetworkBest,
    NetworkComparison,
    PeerTile,
    RankBy,
    RankRow,
    TimelinePoint,
    build_network_comparison,
    non_zero_average,
)
from .reducer import ReductionMode, ShiftMetrics, reduce_shift
from .rollup import DailySeries, SubjectRollup, build_daily_series

__all__ = [
    "ReductionMode",
    "ShiftMetrics",
    "reduce_shift",
    "DailySeries",
    "SubjectRollup",
    "build_daily_series",
    "BestDay",
    "BestWeek",
    "BestMonth",
    "ShiftCompare",
    "MilestoneResult",
    "compute_milestone",
    "compute_milestones",
    "RankBy",
    "TimelinePoint",
    "PeerTile",
    "RankRow",
    "NetworkBest",
    "NetworkComparison",
    "build_network_comparison",
    "non_zero_average",
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
