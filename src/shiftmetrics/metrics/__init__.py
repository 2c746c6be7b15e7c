"""Metric vocabulary."""

from .vocabulary import (
    METRIC_SPECS,
    MILESTONE_METRICS,
    MetricKind,
    MetricSpec,
    metric_spec,
    validate_metric,
)

__all__ = [
    "METRIC_SPECS",
    "MILESTONE_METRICS",
    "MetricKind",
    "MetricSpec",
    "metric_spec",
    "validate_metric",
]
