"""Core utilities shared across shiftmetrics modules."""

from .errors import (
    InvalidDateRangeError,
    MissingSubjectError,
    ShiftMetricsValueError,
    StoreReadError,
    UnknownMetricError,
    UnknownPeerError,
)
from .parsing import has_number, parse_number, parse_optional, parse_quantity
from .types import MAX_DATE, MIN_DATE, DateRange, iter_days, parse_date

__all__ = [
    "ShiftMetricsValueError",
    "MissingSubjectError",
    "UnknownMetricError",
    "UnknownPeerError",
    "InvalidDateRangeError",
    "StoreReadError",
    "parse_number",
    "parse_quantity",
    "parse_optional",
    "has_number",
    "DateRange",
    "MIN_DATE",
    "MAX_DATE",
    "iter_days",
    "parse_date",
]
