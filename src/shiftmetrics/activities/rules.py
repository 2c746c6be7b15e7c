"""Per-kind derivation rules turning typed activity fields into metric contributions."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING

from shiftmetrics.activities.decode import DECODERS, decode_fields
from shiftmetrics.activities.models import (
    EMPTY_CONTRIBUTION,
    ActivityFields,
    ActivityKind,
    BackfillingFields,
    ChargingFields,
    Contribution,
    FaceDrillingFields,
    FiringFields,
    GroundSupportFields,
    HaulingFields,
    HoistingFields,
    LoadingFields,
    ProductionDrillingFields,
)
from shiftmetrics.metrics.vocabulary import (
    AGI_VOLUME,
    BACKFILL_BUCKETS,
    BACKFILL_VOLUME,
    FACE_DRILLM,
    GS_DRILLM,
    HEADINGS_BORED,
    HEADINGS_FIRED,
    HEADINGS_SUPPORTED,
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
)
from shiftmetrics.records.models import ActivityRecord

if TYPE_CHECKING:
    from shiftmetrics.config import EngineConfig

__all__ = ["DERIVERS", "classify_activity", "derive_contribution", "location_key"]

logger = logging.getLogger(__name__)


def location_key(location: str | None) -> str | None:
    """Key used for distinct-location sets (whitespace collapsed, case-folded)."""

    if location is None:
        return None
    key = " ".join(location.split()).casefold()
    return key or None


def _amounts(candidates: Mapping[str, float | None]) -> dict[str, float]:
    return {
        name: float(value)
        for name, value in candidates.items()
        if value is not None and value > 0
    }


def _locations(metric: str, location: str | None) -> dict[str, frozenset[str]]:
    key = location_key(location)
    return {metric: frozenset({key})} if key else {}


def _product(*factors: float | None) -> float | None:
    """Multiply factors; ``None`` when any factor is absent."""

    result = 1.0
    for factor in factors:
        if factor is None:
            return None
        result *= max(factor, 0.0)
    return result


def _sum_present(*values: float | None) -> float:
    return sum(max(value, 0.0) for value in values if value is not None)


def _with_precedence(direct: float | None, computed: float | None) -> float | None:
    if direct is not None and direct > 0:
        return direct
    return computed


def _derive_ground_support(fields: GroundSupportFields) -> Contribution:
    drillm = _with_precedence(fields.gs_drillm, _product(fields.bolts, fields.bolt_length))
    return Contribution(
        amounts=_amounts(
            {
                GS_DRILLM: drillm,
                SPRAY_VOLUME: fields.spray_volume,
                AGI_VOLUME: fields.agi_volume,
            }
        ),
        locations=_locations(HEADINGS_SUPPORTED, fields.location),
    )


def _derive_face_drilling(fields: FaceDrillingFields) -> Contribution:
    drillm = _with_precedence(fields.dev_drillm, _product(fields.holes, fields.cut_length))
    return Contribution(
        amounts=_amounts({FACE_DRILLM: drillm}),
        locations=_locations(HEADINGS_BORED, fields.location),
    )


def _derive_hauling(fields: HaulingFields) -> Contribution:
    if fields.load_weights:
        trucks: float | None = float(len(fields.load_weights))
        known = [weight for weight in fields.load_weights if weight is not None]
        tonnes = sum(max(weight, 0.0) for weight in known) if known else None
    else:
        trucks = fields.trucks
        tonnes = _product(fields.trucks, fields.weight)
    if trucks is not None and trucks < 0:
        trucks = 0.0
    return Contribution(
        amounts=_amounts(
            {
                TRUCK_LOADS: trucks,
                TONNES_HAULED: tonnes,
                TKMS: _product(tonnes, fields.distance),
            }
        )
    )


def _derive_production_drilling(fields: ProductionDrillingFields) -> Contribution:
    total = _sum_present(fields.metres_drilled, fields.cleanouts_drilled, fields.redrills)
    return Contribution(amounts=_amounts({PRODUCTION_DRILLM: total}))


def _primary_buckets(fields: LoadingFields) -> float | None:
    if fields.to_truck is None and fields.to_stockpile is None:
        return fields.buckets
    return _sum_present(fields.to_truck, fields.to_stockpile)


def _derive_loading_development(fields: LoadingFields) -> Contribution:
    return Contribution(amounts=_amounts({PRIMARY_DEVELOPMENT_BUCKETS: _primary_buckets(fields)}))


def _derive_loading_production(fields: LoadingFields) -> Contribution:
    return Contribution(amounts=_amounts({PRIMARY_PRODUCTION_BUCKETS: _primary_buckets(fields)}))


def _derive_backfilling(fields: BackfillingFields) -> Contribution:
    return Contribution(
        amounts=_amounts({BACKFILL_VOLUME: fields.volume, BACKFILL_BUCKETS: fields.buckets})
    )


def _derive_charging(fields: ChargingFields) -> Contribution:
    # Kilograms; the reducer applies the metric's accumulator scale.
    return Contribution(amounts=_amounts({TONNES_CHARGED: fields.charge_kg}))


def _derive_firing_development(fields: FiringFields) -> Contribution:
    return Contribution(locations=_locations(HEADINGS_FIRED, fields.location))


def _derive_firing_production(fields: FiringFields) -> Contribution:
    return Contribution(amounts=_amounts({TONNES_FIRED: fields.tonnes_fired}))


def _derive_hoisting(fields: HoistingFields) -> Contribution:
    return Contribution(
        amounts=_amounts(
            {ORE_TONNES_HOISTED: fields.ore_tonnes, WASTE_TONNES_HOISTED: fields.waste_tonnes}
        )
    )


Deriver = Callable[[ActivityFields], Contribution]


def _build_derivers(table: Mapping[ActivityKind, Deriver]) -> Mapping[ActivityKind, Deriver]:
    missing = [kind.value for kind in ActivityKind if kind not in table]
    undecoded = [kind.value for kind in ActivityKind if kind not in DECODERS]
    if missing or undecoded:
        raise RuntimeError(
            f"Activity rule tables incomplete: derivers missing {missing}, "
            f"decoders missing {undecoded}"
        )
    return dict(table)


DERIVERS: Mapping[ActivityKind, Deriver] = _build_derivers(
    {
        ActivityKind.GROUND_SUPPORT: _derive_ground_support,
        ActivityKind.FACE_DRILLING: _derive_face_drilling,
        ActivityKind.HAULING: _derive_hauling,
        ActivityKind.PRODUCTION_DRILLING: _derive_production_drilling,
        ActivityKind.LOADING_DEVELOPMENT: _derive_loading_development,
        ActivityKind.LOADING_PRODUCTION: _derive_loading_production,
        ActivityKind.BACKFILLING: _derive_backfilling,
        ActivityKind.CHARGING: _derive_charging,
        ActivityKind.FIRING_DEVELOPMENT: _derive_firing_development,
        ActivityKind.FIRING_PRODUCTION: _derive_firing_production,
        ActivityKind.HOISTING: _derive_hoisting,
    }
)


def _resolve_config(config: EngineConfig | None) -> EngineConfig:
    if config is not None:
        return config
    # Local import to avoid a circular dependency (config imports ActivityKind).
    from shiftmetrics.config import DEFAULT_ENGINE_CONFIG

    return DEFAULT_ENGINE_CONFIG


def classify_activity(
    activity: str | None,
    sub_activity: str | None,
    config: EngineConfig | None = None,
) -> ActivityKind | None:
    """Return the :class:`ActivityKind` for an activity/sub-activity pair, if routed."""

    cfg = _resolve_config(config)
    activity_key = " ".join(str(activity or "").split()).casefold()
    sub_key = " ".join(str(sub_activity or "").split()).casefold()
    for route in cfg.routes:
        if route.matches(activity_key, sub_key):
            return route.kind
    return None


def derive_contribution(
    record: ActivityRecord,
    config: EngineConfig | None = None,
) -> Contribution:
    """Derive the metric contribution of one activity record.

    Pure in (activity, sub-activity, field map): unrouted records and unusable fields
    contribute nothing rather than raising.
    """

    cfg = _resolve_config(config)
    kind = classify_activity(record.activity, record.sub_activity, cfg)
    if kind is None:
        logger.debug(
            "No metric rule for activity %r / %r (shift %s)",
            record.activity,
            record.sub_activity,
            record.shift_id,
        )
        return EMPTY_CONTRIBUTION
    fields = decode_fields(kind, record, cfg.aliases_for(kind), cfg.location_aliases)
    return DERIVERS[kind](fields)
