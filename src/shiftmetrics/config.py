"""Engine configuration: vocabulary, activity routing, alias tables, fallback names.

``EngineConfig`` is immutable and is passed into every engine entry point (``config=``)
so tests and deployments can substitute their own tables. ``DEFAULT_ENGINE_CONFIG``
mirrors the production forms. ``load_engine_config`` extends the defaults from YAML.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType

import yaml
from pydantic import BaseModel, ValidationError

from shiftmetrics.activities.models import ActivityKind
from shiftmetrics.core.errors import ShiftMetricsValueError
from shiftmetrics.metrics.vocabulary import (
    AGI_VOLUME,
    BACKFILL_BUCKETS,
    BACKFILL_VOLUME,
    FACE_DRILLM,
    GS_DRILLM,
    HEADINGS_BORED,
    HEADINGS_FIRED,
    HEADINGS_SUPPORTED,
    METRIC_SPECS,
    ORE_TONNES_HOISTED,
    PRIMARY_DEVELOPMENT_BUCKETS,
    PRIMARY_PRODUCTION_BUCKETS,
    PRODUCTION_DRILLM,
    SPRAY_VOLUME,
    TKMS,
    TONNES_CHARGED,
    TONNES_FIRED,
    TONNES_HAULED,
    TRUCK_LOADS,
    WASTE_TONNES_HOISTED,
    MetricKind,
    MetricSpec,
)

__all__ = [
    "ActivityRoute",
    "StoredTotalRule",
    "EngineConfig",
    "EngineConfigOverrides",
    "DEFAULT_ENGINE_CONFIG",
    "load_engine_config",
    "normalise_name",
]


def normalise_name(value: object) -> str:
    """Case-fold and collapse whitespace so form keys compare reliably."""

    return " ".join(str(value).split()).casefold()


@dataclass(frozen=True, slots=True)
class ActivityRoute:
    """Maps activity/sub-activity strings to an :class:`ActivityKind`.

    ``activities`` are matched exactly (after normalisation). ``sub_tokens`` match when
    any token is contained in the normalised sub-activity; an empty tuple matches every
    sub-activity.
    """

    kind: ActivityKind
    activities: tuple[str, ...]
    sub_tokens: tuple[str, ...] = ()

    def matches(self, activity: str, sub_activity: str) -> bool:
        if activity not in self.activities:
            return False
        if not self.sub_tokens:
            return True
        return any(token in sub_activity for token in self.sub_tokens)


@dataclass(frozen=True, slots=True)
class StoredTotalRule:
    """Best-effort mapping from stored aggregate field names onto a vocabulary metric.

    ``activities`` restricts the match to those (normalised) activity keys; empty means
    any activity.
    """

    metric: str
    fields: tuple[str, ...]
    activities: tuple[str, ...] = ()


DEFAULT_ROUTES: tuple[ActivityRoute, ...] = (
    ActivityRoute(ActivityKind.GROUND_SUPPORT, ("development",), ("ground support", "rehab")),
    ActivityRoute(ActivityKind.FACE_DRILLING, ("development",), ("face drilling",)),
    ActivityRoute(ActivityKind.HAULING, ("hauling", "truck", "trucking")),
    ActivityRoute(ActivityKind.PRODUCTION_DRILLING, ("production drilling",)),
    ActivityRoute(ActivityKind.LOADING_PRODUCTION, ("loading",), ("production", "stope")),
    ActivityRoute(ActivityKind.LOADING_DEVELOPMENT, ("loading",), ("development", "heading")),
    ActivityRoute(ActivityKind.BACKFILLING, ("backfilling", "backfill")),
    ActivityRoute(ActivityKind.CHARGING, ("charging",)),
    ActivityRoute(ActivityKind.FIRING_DEVELOPMENT, ("firing",), ("development", "heading")),
    ActivityRoute(ActivityKind.FIRING_PRODUCTION, ("firing",), ("production", "stope")),
    ActivityRoute(ActivityKind.HOISTING, ("hoisting",)),
)

_BUCKET_ALIASES = ("Buckets", "No of Buckets", "No. of Buckets")

DEFAULT_FIELD_ALIASES: dict[ActivityKind, dict[str, tuple[str, ...]]] = {
    ActivityKind.GROUND_SUPPORT: {
        "bolts": ("No. of Bolts", "No of Bolts", "Bolts"),
        "bolt_length": ("Bolt Length",),
        "gs_drillm": ("GS Drillm",),
        "spray_volume": ("Spray Volume",),
        "agi_volume": ("Agi Volume",),
    },
    ActivityKind.FACE_DRILLING: {
        "holes": ("No of Holes", "No. of Holes", "Holes"),
        "cut_length": ("Cut Length",),
        "dev_drillm": ("Dev Drillm", "Face Drillm"),
    },
    ActivityKind.HAULING: {
        "trucks": ("Trucks", "No of trucks", "No. of trucks"),
        "weight": ("Weight", "Weight per Load"),
        "distance": ("Distance", "Haul Distance"),
        "load_weight": ("weight", "Weight", "tonnes"),
    },
    ActivityKind.PRODUCTION_DRILLING: {
        "metres_drilled": ("Metres Drilled", "Meters Drilled"),
        "cleanouts_drilled": ("Cleanouts Drilled",),
        "redrills": ("Redrills",),
    },
    ActivityKind.LOADING_PRODUCTION: {
        "to_truck": ("Stope to Truck",),
        "to_stockpile": ("Stope to SP",),
        "buckets": _BUCKET_ALIASES,
    },
    ActivityKind.LOADING_DEVELOPMENT: {
        "to_truck": ("Heading to Truck",),
        "to_stockpile": ("Heading to SP",),
        "buckets": _BUCKET_ALIASES,
    },
    ActivityKind.BACKFILLING: {
        "volume": ("Volume", "Backfill Volume"),
        "buckets": _BUCKET_ALIASES,
    },
    ActivityKind.CHARGING: {
        "charge_kg": ("Charge kg", "Charge (kg)", "Explosives kg"),
    },
    ActivityKind.FIRING_DEVELOPMENT: {},
    ActivityKind.FIRING_PRODUCTION: {
        "tonnes_fired": ("Tonnes Fired",),
    },
    ActivityKind.HOISTING: {
        "ore_tonnes": ("Ore Tonnes",),
        "waste_tonnes": ("Waste Tonnes",),
    },
}

DEFAULT_LOCATION_ALIASES: tuple[str, ...] = ("Location", "Heading", "Stope")

DEFAULT_STORED_TOTALS: tuple[StoredTotalRule, ...] = (
    StoredTotalRule(GS_DRILLM, ("GS Drillm",), ("development",)),
    StoredTotalRule(FACE_DRILLM, ("Dev Drillm", "Face Drillm"), ("development",)),
    StoredTotalRule(HEADINGS_SUPPORTED, ("Headings supported",)),
    StoredTotalRule(HEADINGS_BORED, ("Headings bored",)),
    StoredTotalRule(TRUCK_LOADS, ("Trucks", "Total Trucks"), ("hauling", "truck", "trucking")),
    StoredTotalRule(TKMS, ("TKMs", "Total TKMS", "TKM's"), ("hauling", "truck", "trucking")),
    StoredTotalRule(
        TONNES_HAULED, ("Weight", "Total Weight", "Tonnes Hauled"), ("hauling", "truck", "trucking")
    ),
    StoredTotalRule(
        PRODUCTION_DRILLM,
        ("Metres Drilled", "Cleanouts Drilled", "Redrills"),
        ("production drilling",),
    ),
    StoredTotalRule(PRIMARY_PRODUCTION_BUCKETS, ("Stope to Truck", "Stope to SP"), ("loading",)),
    StoredTotalRule(
        PRIMARY_DEVELOPMENT_BUCKETS, ("Heading to Truck", "Heading to SP"), ("loading",)
    ),
    StoredTotalRule(SPRAY_VOLUME, ("Spray Volume",), ("development",)),
    StoredTotalRule(AGI_VOLUME, ("Agi Volume",), ("development",)),
    StoredTotalRule(BACKFILL_VOLUME, ("Volume", "Backfill Volume"), ("backfilling", "backfill")),
    StoredTotalRule(BACKFILL_BUCKETS, ("Buckets",), ("backfilling", "backfill")),
    StoredTotalRule(TONNES_CHARGED, ("Charge kg",), ("charging",)),
    StoredTotalRule(HEADINGS_FIRED, ("Headings Fired",)),
    StoredTotalRule(TONNES_FIRED, ("Tonnes Fired",), ("firing",)),
    StoredTotalRule(ORE_TONNES_HOISTED, ("Ore Tonnes",), ("hoisting",)),
    StoredTotalRule(WASTE_TONNES_HOISTED, ("Waste Tonnes",), ("hoisting",)),
)

# Sub-activity buckets that repeat the sum of their siblings in stored aggregates.
DEFAULT_COMBINED_SUB_KEYS: tuple[str, ...] = ("All",)


def _freeze_aliases(
    aliases: Mapping[ActivityKind, Mapping[str, Sequence[str]]],
) -> Mapping[ActivityKind, Mapping[str, tuple[str, ...]]]:
    return MappingProxyType(
        {
            kind: MappingProxyType({name: tuple(values) for name, values in fields.items()})
            for kind, fields in aliases.items()
        }
    )


def _normalise_routes(routes: Sequence[ActivityRoute]) -> tuple[ActivityRoute, ...]:
    return tuple(
        ActivityRoute(
            route.kind,
            tuple(normalise_name(name) for name in route.activities),
            tuple(normalise_name(token) for token in route.sub_tokens),
        )
        for route in routes
    )


def _normalise_stored(rules: Sequence[StoredTotalRule]) -> tuple[StoredTotalRule, ...]:
    return tuple(
        StoredTotalRule(
            rule.metric,
            tuple(normalise_name(name) for name in rule.fields),
            tuple(normalise_name(name) for name in rule.activities),
        )
        for rule in rules
    )


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Immutable configuration consumed by the deriver, reducer, and reporting layers.

    Attributes
    ----------
    metrics:
        Ordered metric vocabulary.
    routes:
        Activity routing table; the first matching route wins.
    field_aliases:
        Per-kind mapping of canonical field name to accepted form keys, in priority order.
    location_aliases:
        Form keys consulted for the record location when the record carries none.
    stored_totals:
        Fallback name table used when reducing from a shift's stored aggregate.
    combined_sub_keys:
        Stored sub-activity keys that duplicate sibling totals and are skipped when the
        activity has other sub-activities.
    """

    metrics: tuple[MetricSpec, ...] = METRIC_SPECS
    routes: tuple[ActivityRoute, ...] = DEFAULT_ROUTES
    field_aliases: Mapping[ActivityKind, Mapping[str, tuple[str, ...]]] = field(
        default_factory=lambda: _freeze_aliases(DEFAULT_FIELD_ALIASES)
    )
    location_aliases: tuple[str, ...] = DEFAULT_LOCATION_ALIASES
    stored_totals: tuple[StoredTotalRule, ...] = DEFAULT_STORED_TOTALS
    combined_sub_keys: tuple[str, ...] = DEFAULT_COMBINED_SUB_KEYS

    def __post_init__(self) -> None:
        names = [spec.name for spec in self.metrics]
        if len(set(names)) != len(names):
            raise ShiftMetricsValueError("Metric vocabulary contains duplicate names")
        known = set(names)
        for spec in self.metrics:
            if spec.kind is MetricKind.DERIVED:
                missing = [name for name in spec.components if name not in known]
                if not spec.components or missing:
                    raise ShiftMetricsValueError(
                        f"Derived metric '{spec.name}' has unknown components: {missing}"
                    )
        for rule in self.stored_totals:
            if rule.metric not in known:
                raise ShiftMetricsValueError(
                    f"Stored-total rule references unknown metric '{rule.metric}'"
                )
        # Route and stored-total names are compared in normalised form.
        object.__setattr__(self, "routes", _normalise_routes(self.routes))
        object.__setattr__(self, "stored_totals", _normalise_stored(self.stored_totals))
        object.__setattr__(self, "field_aliases", _freeze_aliases(self.field_aliases))

    @property
    def metric_names(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.metrics)

    def aliases_for(self, kind: ActivityKind) -> Mapping[str, tuple[str, ...]]:
        return self.field_aliases.get(kind, MappingProxyType({}))

    def extended(self, overrides: EngineConfigOverrides) -> EngineConfig:
        """Return a copy with ``overrides`` appended to the alias and routing tables."""

        routes = list(self.routes)
        for kind_name, activity_names in overrides.activity_names.items():
            kind = _parse_kind(kind_name)
            base = next((route for route in self.routes if route.kind is kind), None)
            tokens = base.sub_tokens if base is not None else ()
            # Extra names are tried before the defaults.
            routes.insert(0, ActivityRoute(kind, tuple(activity_names), tokens))

        aliases: dict[ActivityKind, dict[str, tuple[str, ...]]] = {
            kind: dict(fields) for kind, fields in self.field_aliases.items()
        }
        for kind_name, fields in overrides.field_aliases.items():
            kind = _parse_kind(kind_name)
            current = aliases.setdefault(kind, {})
            for field_name, extra in fields.items():
                current[field_name] = tuple(current.get(field_name, ())) + tuple(extra)

        stored = list(self.stored_totals)
        for metric_name, field_names in overrides.stored_totals.items():
            if metric_name not in self.metric_names:
                raise ShiftMetricsValueError(
                    f"Stored-total override references unknown metric '{metric_name}'"
                )
            stored.append(StoredTotalRule(metric_name, tuple(field_names)))

        return replace(
            self,
            routes=tuple(routes),
            field_aliases=aliases,
            location_aliases=self.location_aliases + tuple(overrides.location_aliases),
            stored_totals=tuple(stored),
        )


class EngineConfigOverrides(BaseModel):
    """YAML schema for site-specific extensions of the default tables."""

    activity_names: dict[str, list[str]] = {}
    field_aliases: dict[str, dict[str, list[str]]] = {}
    location_aliases: list[str] = []
    stored_totals: dict[str, list[str]] = {}


def _parse_kind(name: str) -> ActivityKind:
    try:
        return ActivityKind(normalise_name(name).replace(" ", "_"))
    except ValueError as exc:
        allowed = ", ".join(kind.value for kind in ActivityKind)
        raise ShiftMetricsValueError(
            f"Unknown activity kind '{name}'. Allowed kinds: {allowed}."
        ) from exc


DEFAULT_ENGINE_CONFIG = EngineConfig()


def load_engine_config(path: str | Path | None) -> EngineConfig:
    """Load YAML overrides from ``path`` on top of :data:`DEFAULT_ENGINE_CONFIG`."""

    if path is None:
        return DEFAULT_ENGINE_CONFIG
    config_path = Path(path)
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ShiftMetricsValueError(f"Engine config {config_path} must be a mapping")
    try:
        overrides = EngineConfigOverrides.model_validate(raw)
    except ValidationError as exc:
        raise ShiftMetricsValueError(f"Invalid engine config {config_path}: {exc}") from exc
    return DEFAULT_ENGINE_CONFIG.extended(overrides)
