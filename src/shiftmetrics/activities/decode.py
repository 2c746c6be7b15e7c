"""Decode free-form activity field maps into typed per-kind field structures."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any

from shiftmetrics.activities.models import (
    ActivityFields,
    ActivityKind,
    BackfillingFields,
    ChargingFields,
    FaceDrillingFields,
    FiringFields,
    GroundSupportFields,
    HaulingFields,
    HoistingFields,
    LoadingFields,
    ProductionDrillingFields,
)
from shiftmetrics.core.parsing import has_number, parse_number, parse_optional
from shiftmetrics.records.models import ActivityRecord

__all__ = ["FieldLookup", "Decoder", "DECODERS", "decode_fields"]

Aliases = Mapping[str, Sequence[str]]


def _normalise_key(key: object) -> str:
    return " ".join(str(key).split()).casefold()


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class FieldLookup:
    """Case- and whitespace-insensitive view over one record's field map.

    The first alias with a non-blank value wins; later aliases are only consulted when the
    earlier ones are absent or empty.
    """

    def __init__(self, record: ActivityRecord, location_aliases: Sequence[str] = ()) -> None:
        self.record = record
        self._index = self._build_index(record.values)
        self._location_aliases = tuple(location_aliases)

    @staticmethod
    def _build_index(values: Mapping[str, Any]) -> dict[str, Any]:
        index: dict[str, Any] = {}
        for key, value in values.items():
            normalised = _normalise_key(key)
            if normalised not in index or _is_blank(index[normalised]):
                index[normalised] = value
        return index

    def raw(self, aliases: Sequence[str]) -> Any:
        for alias in aliases:
            value = self._index.get(_normalise_key(alias))
            if not _is_blank(value):
                return value
        return None

    def number(self, aliases: Sequence[str]) -> float | None:
        """Parsed value of the first non-blank alias, ``None`` unless it is numeric."""
        value = self.raw(aliases)
        return parse_number(value) if has_number(value) else None

    def location(self) -> str | None:
        if self.record.location:
            return self.record.location
        value = self.raw(self._location_aliases)
        if value is None:
            return None
        text = " ".join(str(value).split())
        return text or None

    def load_weights(self, aliases: Sequence[str]) -> tuple[float | None, ...] | None:
        loads = self.record.loads
        if not loads:
            return None
        weights: list[float | None] = []
        for load in loads:
            index = self._build_index(load)
            value = next(
                (
                    index[_normalise_key(alias)]
                    for alias in aliases
                    if not _is_blank(index.get(_normalise_key(alias)))
                ),
                None,
            )
            weights.append(parse_optional(value))
        return tuple(weights)


def _decode_ground_support(lookup: FieldLookup, aliases: Aliases) -> GroundSupportFields:
    return GroundSupportFields(
        bolts=lookup.number(aliases.get("bolts", ())),
        bolt_length=lookup.number(aliases.get("bolt_length", ())),
        gs_drillm=lookup.number(aliases.get("gs_drillm", ())),
        spray_volume=lookup.number(aliases.get("spray_volume", ())),
        agi_volume=lookup.number(aliases.get("agi_volume", ())),
        location=lookup.location(),
    )


def _decode_face_drilling(lookup: FieldLookup, aliases: Aliases) -> FaceDrillingFields:
    return FaceDrillingFields(
        holes=lookup.number(aliases.get("holes", ())),
        cut_length=lookup.number(aliases.get("cut_length", ())),
        dev_drillm=lookup.number(aliases.get("dev_drillm", ())),
        location=lookup.location(),
    )


def _decode_hauling(lookup: FieldLookup, aliases: Aliases) -> HaulingFields:
    return HaulingFields(
        trucks=lookup.number(aliases.get("trucks", ())),
        weight=lookup.number(aliases.get("weight", ())),
        distance=lookup.number(aliases.get("distance", ())),
        load_weights=lookup.load_weights(aliases.get("load_weight", ())),
    )


def _decode_production_drilling(
    lookup: FieldLookup, aliases: Aliases
) -> ProductionDrillingFields:
    return ProductionDrillingFields(
        metres_drilled=lookup.number(aliases.get("metres_drilled", ())),
        cleanouts_drilled=lookup.number(aliases.get("cleanouts_drilled", ())),
        redrills=lookup.number(aliases.get("redrills", ())),
    )


def _decode_loading(lookup: FieldLookup, aliases: Aliases) -> LoadingFields:
    return LoadingFields(
        to_truck=lookup.number(aliases.get("to_truck", ())),
        to_stockpile=lookup.number(aliases.get("to_stockpile", ())),
        buckets=lookup.number(aliases.get("buckets", ())),
    )


def _decode_backfilling(lookup: FieldLookup, aliases: Aliases) -> BackfillingFields:
    return BackfillingFields(
        volume=lookup.number(aliases.get("volume", ())),
        buckets=lookup.number(aliases.get("buckets", ())),
    )


def _decode_charging(lookup: FieldLookup, aliases: Aliases) -> ChargingFields:
    return ChargingFields(charge_kg=lookup.number(aliases.get("charge_kg", ())))


def _decode_firing(lookup: FieldLookup, aliases: Aliases) -> FiringFields:
    return FiringFields(
        tonnes_fired=lookup.number(aliases.get("tonnes_fired", ())),
        location=lookup.location(),
    )


def _decode_hoisting(lookup: FieldLookup, aliases: Aliases) -> HoistingFields:
    return HoistingFields(
        ore_tonnes=lookup.number(aliases.get("ore_tonnes", ())),
        waste_tonnes=lookup.number(aliases.get("waste_tonnes", ())),
    )


Decoder = Callable[[FieldLookup, Aliases], ActivityFields]

DECODERS: Mapping[ActivityKind, Decoder] = {
    ActivityKind.GROUND_SUPPORT: _decode_ground_support,
    ActivityKind.FACE_DRILLING: _decode_face_drilling,
    ActivityKind.HAULING: _decode_hauling,
    ActivityKind.PRODUCTION_DRILLING: _decode_production_drilling,
    ActivityKind.LOADING_DEVELOPMENT: _decode_loading,
    ActivityKind.LOADING_PRODUCTION: _decode_loading,
    ActivityKind.BACKFILLING: _decode_backfilling,
    ActivityKind.CHARGING: _decode_charging,
    ActivityKind.FIRING_DEVELOPMENT: _decode_firing,
    ActivityKind.FIRING_PRODUCTION: _decode_firing,
    ActivityKind.HOISTING: _decode_hoisting,
}


def decode_fields(
    kind: ActivityKind,
    record: ActivityRecord,
    aliases: Aliases,
    location_aliases: Sequence[str] = (),
) -> ActivityFields:
    """Decode ``record`` into the typed field structure for ``kind``."""

    return DECODERS[kind](FieldLookup(record, location_aliases), aliases)
