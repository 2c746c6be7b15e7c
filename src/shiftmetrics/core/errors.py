"""Common shiftmetrics exceptions."""

from __future__ import annotations

from collections.abc import Iterable


class ShiftMetricsValueError(ValueError):
    """Raised when shiftmetrics detects invalid caller-provided data."""


class MissingSubjectError(ShiftMetricsValueError):
    """Raised when a query has no resolvable subject id."""

    def __init__(self, message: str = "missing subject") -> None:
        super().__init__(message)


class UnknownMetricError(ShiftMetricsValueError):
    """Raised when a metric name is not part of the milestone vocabulary."""

    def __init__(self, name: object, allowed: Iterable[str]) -> None:
        self.name = name
        self.allowed = tuple(allowed)
        super().__init__(
            f"Unknown metric '{name}'. Metric must be one of: {', '.join(self.allowed)}"
        )


class UnknownPeerError(ShiftMetricsValueError):
    """Raised when a compare peer is not part of the caller's accepted connections."""


class InvalidDateRangeError(ShiftMetricsValueError):
    """Raised when a date range cannot be parsed or is inverted."""


class StoreReadError(RuntimeError):
    """Raised when the backing shift store fails; queries never return partial results."""


__all__ = [
    "ShiftMetricsValueError",
    "MissingSubjectError",
    "UnknownMetricError",
    "UnknownPeerError",
    "InvalidDateRangeError",
    "StoreReadError",
]
