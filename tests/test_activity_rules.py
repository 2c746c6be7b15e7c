from __future__ import annotations

import pytest

from shiftmetrics.activities import (
    DECODERS,
    DERIVERS,
    ActivityKind,
    FieldLookup,
    HaulingFields,
    classify_activity,
    decode_fields,
    derive_contribution,
)
from shiftmetrics.config import DEFAULT_ENGINE_CONFIG
from tests.helpers import make_record


def test_rule_tables_cover_every_kind():
    assert set(DERIVERS) == set(ActivityKind)
    assert set(DECODERS) == set(ActivityKind)
    assert set(DEFAULT_ENGINE_CONFIG.field_aliases) == set(ActivityKind)


@pytest.mark.parametrize(
    ("activity", "sub_activity", "kind"),
    [
        ("Development", "Ground Support", ActivityKind.GROUND_SUPPORT),
        ("development", "Rehab", ActivityKind.GROUND_SUPPORT),
        ("Development", "Face Drilling", ActivityKind.FACE_DRILLING),
        ("Hauling", "Production", ActivityKind.HAULING),
        ("Trucking", "", ActivityKind.HAULING),
        ("TRUCK", "Development", ActivityKind.HAULING),
        ("Production Drilling", "Stope", ActivityKind.PRODUCTION_DRILLING),
        ("Loading", "Stope", ActivityKind.LOADING_PRODUCTION),
        ("Loading", "Production", ActivityKind.LOADING_PRODUCTION),
        ("Loading", "Heading", ActivityKind.LOADING_DEVELOPMENT),
        ("Loading", "Development", ActivityKind.LOADING_DEVELOPMENT),
        ("Backfilling", "Surface", ActivityKind.BACKFILLING),
        ("Charging", "Development", ActivityKind.CHARGING),
        ("Firing", "Development", ActivityKind.FIRING_DEVELOPMENT),
        ("Firing", "Production", ActivityKind.FIRING_PRODUCTION),
        ("Hoisting", "Shaft", ActivityKind.HOISTING),
    ],
)
def test_classify_activity(activity, sub_activity, kind):
    assert classify_activity(activity, sub_activity) is kind


@pytest.mark.parametrize(
    ("activity", "sub_activity"),
    [("Development", "Survey"), ("Loading", "Stockpile"), ("Meeting", ""), ("", "")],
)
def test_unrouted_records_contribute_nothing(activity, sub_activity):
    assert classify_activity(activity, sub_activity) is None
    record = make_record(1, activity, sub_activity, {"Trucks": 4})
    assert derive_contribution(record).is_empty


def test_hauling_accumulators():
    record = make_record(1, "Hauling", "Production", {"Trucks": 4, "Weight": 50, "Distance": 2})
    contribution = derive_contribution(record)
    assert contribution.amounts == {
        "Truck Loads": pytest.approx(4),
        "Tonnes Hauled": pytest.approx(200),
        "TKM's": pytest.approx(400),
    }
    assert contribution.locations == {}


def test_hauling_missing_factor_only_zeroes_its_own_accumulator():
    record = make_record(1, "Hauling", "Production", {"No of trucks": "3", "Weight": "n/a"})
    contribution = derive_contribution(record)
    assert contribution.amounts == {"Truck Loads": pytest.approx(3)}


def test_hauling_loads_list_overrides_truck_count():
    record = make_record(
        1,
        "Hauling",
        "Development",
        {"Trucks": 9, "Weight": 99, "Distance": "1.5km"},
        loads=[{"weight": "40"}, {"Weight": 45}, {"note": "no weight"}],
    )
    fields = decode_fields(
        ActivityKind.HAULING, record, DEFAULT_ENGINE_CONFIG.aliases_for(ActivityKind.HAULING)
    )
    assert isinstance(fields, HaulingFields)
    assert fields.load_weights == (40.0, 45.0, None)
    contribution = derive_contribution(record)
    assert contribution.amounts["Truck Loads"] == pytest.approx(3)
    assert contribution.amounts["Tonnes Hauled"] == pytest.approx(85)
    assert contribution.amounts["TKM's"] == pytest.approx(127.5)


def test_ground_support_bolts_times_length():
    record = make_record(
        1,
        "Development",
        "Ground Support",
        {"No. of bolts": "10", "Bolt length": "2.4m", "Spray Volume": "3"},
        location=" 4L  N Drive ",
    )
    contribution = derive_contribution(record)
    assert contribution.amounts["GS Drillm"] == pytest.approx(24)
    assert contribution.amounts["Spray Volume"] == pytest.approx(3)
    assert contribution.locations == {"Headings supported": frozenset({"4l n drive"})}


def test_ground_support_precomputed_drillm_takes_precedence():
    record = make_record(
        1,
        "Development",
        "Rehab",
        {"No of Bolts": 10, "Bolt Length": "2.4m", "GS Drillm": "30"},
    )
    assert derive_contribution(record).amounts == {"GS Drillm": pytest.approx(30)}


def test_face_drilling_and_location_from_values():
    record = make_record(
        1,
        "Development",
        "Face Drilling",
        {"No of Holes": 45, "Cut Length": "3.4", "Heading": "5L Access"},
    )
    contribution = derive_contribution(record)
    assert contribution.amounts == {"Face Drillm": pytest.approx(153)}
    assert contribution.locations == {"Headings bored": frozenset({"5l access"})}


def test_production_drilling_sums_sub_buckets():
    record = make_record(
        1,
        "Production Drilling",
        "Stope",
        {"Metres Drilled": "120", "Cleanouts Drilled": 15, "Redrills": "x"},
    )
    assert derive_contribution(record).amounts == {"Production drillm": pytest.approx(135)}


def test_loading_splits_development_and_production_buckets():
    production = make_record(1, "Loading", "Stope", {"Stope to Truck": 12, "Stope to SP": 4})
    development = make_record(1, "Loading", "Heading", {"Buckets": 7})
    assert derive_contribution(production).amounts == {
        "Primary Production buckets": pytest.approx(16)
    }
    assert derive_contribution(development).amounts == {
        "Primary Development buckets": pytest.approx(7)
    }


def test_backfilling_charging_firing_hoisting():
    backfill = derive_contribution(
        make_record(1, "Backfilling", "Underground", {"Volume": 80, "Buckets": 11})
    )
    assert backfill.amounts == {
        "Backfill Volume": pytest.approx(80),
        "Backfill buckets": pytest.approx(11),
    }
    charging = derive_contribution(make_record(1, "Charging", "Development", {"Charge kg": 1500}))
    assert charging.amounts == {"Tonnes charged": pytest.approx(1500)}
    fired = derive_contribution(make_record(1, "Firing", "Development", location="4L N Drive"))
    assert fired.locations == {"Headings Fired": frozenset({"4l n drive"})}
    tonnes_fired = derive_contribution(
        make_record(1, "Firing", "Production", {"Tonnes Fired": 900})
    )
    assert tonnes_fired.amounts == {"Tonnes Fired": pytest.approx(900)}
    hoisting = derive_contribution(
        make_record(1, "Hoisting", "Shaft", {"Ore Tonnes": 300, "Waste Tonnes": "120t"})
    )
    assert hoisting.amounts == {
        "Ore tonnes hoisted": pytest.approx(300),
        "Waste tonnes hoisted": pytest.approx(120),
    }


def test_negative_and_malformed_inputs_never_go_negative():
    record = make_record(
        1,
        "Hauling",
        "Production",
        {"Trucks": "-4", "Weight": "-50", "Distance": "2"},
    )
    contribution = derive_contribution(record)
    assert all(value >= 0 for value in contribution.amounts.values())
    assert contribution.amounts == {}


def test_derivation_is_pure():
    record = make_record(1, "Hauling", "Production", {"Trucks": 4, "Weight": 50, "Distance": 2})
    assert derive_contribution(record) == derive_contribution(record)


@pytest.mark.parametrize(
    ("values", "expected"),
    [
        ({"No. of Bolts": "12 bolts"}, 12.0),
        ({"No. of Bolts": "n/a"}, None),
        ({"No. of Bolts": "  ", "Bolts": "7"}, 7.0),
        ({"no.  of BOLTS": "-3"}, -3.0),
        ({}, None),
    ],
)
def test_field_lookup_number_requires_numeric_content(values, expected):
    lookup = FieldLookup(make_record(1, "Development", "Ground Support", values))
    assert lookup.number(["No. of Bolts", "Bolts"]) == expected
