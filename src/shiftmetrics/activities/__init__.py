"""Activity classification, field decoding, and metric derivation."""

from .decode import DECODERS, FieldLookup, decode_fields
from .models import (
    EMPTY_CONTRIBUTION,
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
from .rules import DERIVERS, classify_activity, derive_contribution, location_key

__all__ = [
    "ActivityKind",
    "Contribution",
    "EMPTY_CONTRIBUTION",
    "GroundSupportFields",
    "FaceDrillingFields",
    "HaulingFields",
    "ProductionDrillingFields",
    "LoadingFields",
    "BackfillingFields",
    "ChargingFields",
    "FiringFields",
    "HoistingFields",
    "FieldLookup",
    "DECODERS",
    "DERIVERS",
    "decode_fields",
    "classify_activity",
    "derive_contribution",
    "location_key",
]
