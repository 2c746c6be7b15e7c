"""Canonical milestone metric vocabulary.

The vocabulary is a frozen, ordered tuple of :class:`MetricSpec` entries. Anything outside
this set is not a milestone metric and is rejected before computation starts.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from shiftmetrics.core.errors import UnknownMetricError

__all__ = [
    "MetricKind",
    "MetricSpec",
    "METRIC_SPECS",
    "MILESTONE_METRICS",
    "GS_DRILLM",
    "FACE_DRILLM",
    "HEADINGS_SUPPORTED",
    "HEADINGS_BORED",
    "TRUCK_LOADS",
    "TKMS",
    "TONNES_HAULED",
    "PRODUCTION_DRILLM",
    "PRIMARY_PRODUCTION_BUCKETS",
    "PRIMARY_DEVELOPMENT_BUCKETS",
    "SPRAY_VOLUME",
    "AGI_VOLUME",
    "BACKFILL_VOLUME",
    "BACKFILL_BUCKETS",
    "TONNES_CHARGED",
    "HEADINGS_FIRED",
    "TONNES_FIRED",
    "ORE_TONNES_HOISTED",
    "WASTE_TONNES_HOISTED",
    "TOTAL_TONNES_HOISTED",
    "metric_spec",
    "validate_metric",
]


class MetricKind(str, Enum):
    SUM = "sum"
    DISTINCT = "distinct"
    DERIVED = "derived"


@dataclass(frozen=True, slots=True)
class MetricSpec:
    """Definition of one canonical metric.

    Attributes
    ----------
    name:
        Display/canonical name used as the key in every metric map.
    unit:
        Display unit.
    kind:
        ``SUM`` metrics add contributions, ``DISTINCT`` metrics count unique locations,
        ``DERIVED`` metrics are computed from ``components`` after accumulation.
    accumulator_scale:
        Factor applied by the reducer to the accumulated amount (e.g. kg → t).
    components:
        Metric names summed to produce a ``DERIVED`` metric.
    """

    name: str
    unit: str
    kind: MetricKind = MetricKind.SUM
    accumulator_scale: float = 1.0
    components: tuple[str, ...] = ()


GS_DRILLM = "GS Drillm"
FACE_DRILLM = "Face Drillm"
HEADINGS_SUPPORTED = "Headings supported"
HEADINGS_BORED = "Headings bored"
TRUCK_LOADS = "Truck Loads"
TKMS = "TKM's"
TONNES_HAULED = "Tonnes Hauled"
PRODUCTION_DRILLM = "Production drillm"
PRIMARY_PRODUCTION_BUCKETS = "Primary Production buckets"
PRIMARY_DEVELOPMENT_BUCKETS = "Primary Development buckets"
SPRAY_VOLUME = "Spray Volume"
AGI_VOLUME = "Agi Volume"
BACKFILL_VOLUME = "Backfill Volume"
BACKFILL_BUCKETS = "Backfill buckets"
TONNES_CHARGED = "Tonnes charged"
HEADINGS_FIRED = "Headings Fired"
TONNES_FIRED = "Tonnes Fired"
ORE_TONNES_HOISTED = "Ore tonnes hoisted"
WASTE_TONNES_HOISTED = "Waste tonnes hoisted"
TOTAL_TONNES_HOISTED = "Total tonnes hoisted"

METRIC_SPECS: tuple[MetricSpec, ...] = (
    MetricSpec(GS_DRILLM, "m"),
    MetricSpec(FACE_DRILLM, "m"),
    MetricSpec(HEADINGS_SUPPORTED, "hdgs", MetricKind.DISTINCT),
    MetricSpec(HEADINGS_BORED, "hdgs", MetricKind.DISTINCT),
    MetricSpec(TRUCK_LOADS, "loads"),
    MetricSpec(TKMS, "tkm"),
    MetricSpec(TONNES_HAULED, "t"),
    MetricSpec(PRODUCTION_DRILLM, "m"),
    MetricSpec(PRIMARY_PRODUCTION_BUCKETS, "buckets"),
    MetricSpec(PRIMARY_DEVELOPMENT_BUCKETS, "buckets"),
    MetricSpec(SPRAY_VOLUME, "m3"),
    MetricSpec(AGI_VOLUME, "m3"),
    MetricSpec(BACKFILL_VOLUME, "m3"),
    MetricSpec(BACKFILL_BUCKETS, "buckets"),
    # Charge mass is accumulated in kilograms and reported in tonnes.
    MetricSpec(TONNES_CHARGED, "t", accumulator_scale=0.001),
    MetricSpec(HEADINGS_FIRED, "hdgs", MetricKind.DISTINCT),
    MetricSpec(TONNES_FIRED, "t"),
    MetricSpec(ORE_TONNES_HOISTED, "t"),
    MetricSpec(WASTE_TONNES_HOISTED, "t"),
    MetricSpec(
        TOTAL_TONNES_HOISTED,
        "t",
        MetricKind.DERIVED,
        components=(ORE_TONNES_HOISTED, WASTE_TONNES_HOISTED),
    ),
)

MILESTONE_METRICS: tuple[str, ...] = tuple(spec.name for spec in METRIC_SPECS)


def _normalise(name: object) -> str:
    return " ".join(str(name).split()).lower()


def metric_spec(name: str, specs: Sequence[MetricSpec] = METRIC_SPECS) -> MetricSpec:
    """Return the :class:`MetricSpec` for ``name`` (exact canonical spelling)."""

    for spec in specs:
        if spec.name == name:
            return spec
    raise UnknownMetricError(name, (spec.name for spec in specs))


def validate_metric(name: object, specs: Sequence[MetricSpec] = METRIC_SPECS) -> str:
    """Resolve ``name`` against the vocabulary and return its canonical spelling.

    Matching ignores case and repeated whitespace so deep links such as
    ``tonnes hauled`` resolve; anything else raises :class:`UnknownMetricError`.
    """

    allowed = tuple(spec.name for spec in specs)
    if name is None or not str(name).strip():
        raise UnknownMetricError(name, allowed)
    wanted = _normalise(name)
    for canonical in allowed:
        if _normalise(canonical) == wanted:
            return canonical
    raise UnknownMetricError(name, allowed)
