from __future__ import annotations

import pytest

from shiftmetrics.core.errors import ShiftMetricsValueError, UnknownMetricError
from shiftmetrics.metrics.vocabulary import (
    METRIC_SPECS,
    MILESTONE_METRICS,
    TOTAL_TONNES_HOISTED,
    MetricKind,
    metric_spec,
    validate_metric,
)


def test_vocabulary_is_ordered_and_unique():
    assert len(MILESTONE_METRICS) == 20
    assert len(set(MILESTONE_METRICS)) == len(MILESTONE_METRICS)
    assert MILESTONE_METRICS[0] == "GS Drillm"
    assert MILESTONE_METRICS[-1] == "Total tonnes hoisted"


def test_distinct_and_derived_kinds():
    distinct = {spec.name for spec in METRIC_SPECS if spec.kind is MetricKind.DISTINCT}
    assert distinct == {"Headings supported", "Headings bored", "Headings Fired"}
    total = metric_spec(TOTAL_TONNES_HOISTED)
    assert total.kind is MetricKind.DERIVED
    assert total.components == ("Ore tonnes hoisted", "Waste tonnes hoisted")
    assert metric_spec("Tonnes charged").accumulator_scale == pytest.approx(0.001)


@pytest.mark.parametrize(
    ("raw", "canonical"),
    [
        ("Tonnes Hauled", "Tonnes Hauled"),
        ("tonnes hauled", "Tonnes Hauled"),
        ("  TONNES   hauled ", "Tonnes Hauled"),
        ("tkm's", "TKM's"),
    ],
)
def test_validate_metric_is_case_and_whitespace_tolerant(raw, canonical):
    assert validate_metric(raw) == canonical


@pytest.mark.parametrize("raw", ["Tonnes", "", None, "GS Drill m"])
def test_validate_metric_rejects_unknown_names(raw):
    with pytest.raises(UnknownMetricError) as excinfo:
        validate_metric(raw)
    assert isinstance(excinfo.value, ShiftMetricsValueError)
    assert "Tonnes Hauled" in str(excinfo.value)
    assert excinfo.value.allowed == MILESTONE_METRICS


def test_metric_spec_requires_exact_name():
    with pytest.raises(UnknownMetricError):
        metric_spec("tonnes hauled")
