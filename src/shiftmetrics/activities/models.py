"""Typed activity variants and the contributions they produce."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

__all__ = [
    "ActivityKind",
    "GroundSupportFields",
    "FaceDrillingFields",
    "HaulingFields",
    "ProductionDrillingFields",
    "LoadingFields",
    "BackfillingFields",
    "ChargingFields",
    "FiringFields",
    "HoistingFields",
    "ActivityFields",
    "Contribution",
    "EMPTY_CONTRIBUTION",
]


class ActivityKind(str, Enum):
    """Closed set of activity variants the engine knows how to derive metrics for."""

    GROUND_SUPPORT = "ground_support"
    FACE_DRILLING = "face_drilling"
    HAULING = "hauling"
    PRODUCTION_DRILLING = "production_drilling"
    LOADING_DEVELOPMENT = "loading_development"
    LOADING_PRODUCTION = "loading_production"
    BACKFILLING = "backfilling"
    CHARGING = "charging"
    FIRING_DEVELOPMENT = "firing_development"
    FIRING_PRODUCTION = "firing_production"
    HOISTING = "hoisting"


# Numeric members are ``None`` when the field is absent or carries no number.


@dataclass(frozen=True, slots=True)
class GroundSupportFields:
    bolts: float | None = None
    bolt_length: float | None = None
    gs_drillm: float | None = None
    spray_volume: float | None = None
    agi_volume: float | None = None
    location: str | None = None


@dataclass(frozen=True, slots=True)
class FaceDrillingFields:
    holes: float | None = None
    cut_length: float | None = None
    dev_drillm: float | None = None
    location: str | None = None


@dataclass(frozen=True, slots=True)
class HaulingFields:
    """Hauling inputs.

    ``load_weights`` is set when the form captured individual loads; each entry is the
    parsed weight of one load (``None`` when that load has no usable weight).
    """

    trucks: float | None = None
    weight: float | None = None
    distance: float | None = None
    load_weights: tuple[float | None, ...] | None = None


@dataclass(frozen=True, slots=True)
class ProductionDrillingFields:
    metres_drilled: float | None = None
    cleanouts_drilled: float | None = None
    redrills: float | None = None


@dataclass(frozen=True, slots=True)
class LoadingFields:
    to_truck: float | None = None
    to_stockpile: float | None = None
    buckets: float | None = None


@dataclass(frozen=True, slots=True)
class BackfillingFields:
    volume: float | None = None
    buckets: float | None = None


@dataclass(frozen=True, slots=True)
class ChargingFields:
    charge_kg: float | None = None


@dataclass(frozen=True, slots=True)
class FiringFields:
    tonnes_fired: float | None = None
    location: str | None = None


@dataclass(frozen=True, slots=True)
class HoistingFields:
    ore_tonnes: float | None = None
    waste_tonnes: float | None = None


ActivityFields = (
    GroundSupportFields
    | FaceDrillingFields
    | HaulingFields
    | ProductionDrillingFields
    | LoadingFields
    | BackfillingFields
    | ChargingFields
    | FiringFields
    | HoistingFields
)


@dataclass(frozen=True, slots=True)
class Contribution:
    """Partial metric contribution of one activity record.

    Attributes
    ----------
    amounts:
        Metric name to non-negative delta, in the metric's accumulator unit.
    locations:
        Distinct-count metric name to the location keys this record adds to the set.
    """

    amounts: Mapping[str, float] = field(default_factory=dict)
    locations: Mapping[str, frozenset[str]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.amounts and not self.locations


EMPTY_CONTRIBUTION = Contribution()
