import pytest

from address_reconcile.components import RANGE_ADDRESS_NOTE, RawAddressRecord
from address_reconcile.errors import MalformedAddress
from address_reconcile.parser import normalize_fields, normalize_record, parse_address, parse_street_line


def test_parse_address_extracts_unit_and_city():
    components, notes = parse_address("123 Main St Unit 5, Chicago, IL 60601")
    assert components.house_number == 123
    assert components.street_name == "MAIN"
    assert components.street_type == "ST"
    assert components.unit_designator == "UNIT"
    assert components.unit_value == "5"
    assert components.city == "CHICAGO"
    assert components.state == "IL"
    assert components.postal_code == "60601"
    assert notes == ()


def test_parse_address_normalizes_directional():
    components, _ = parse_address("100 North Main Street, Miami, FL 33132")
    assert components.pre_directional == "N"
    assert components.street_name == "MAIN"
    assert components.street_type == "ST"


def test_parse_address_without_commas_splits_city_at_street_type():
    components, _ = parse_address("500 NW Oak Ave Grants Pass OR 97526-1234")
    assert components.match_key == "500|NW|OAK|AVE|"
    assert components.city == "GRANTS PASS"
    assert components.state == "OR"
    assert components.postal_code == "97526"


def test_ranged_house_number_uses_low_end_and_notes_range():
    components, notes = parse_street_line("100-102 Main Street")
    assert components.house_number == 100
    assert components.street_type == "ST"
    assert notes == (RANGE_ADDRESS_NOTE,)


def test_match_key_ignores_case_and_synonym_spelling():
    short, _ = normalize_fields({"address": "100 n main avenue"})
    long, _ = normalize_fields({"house_number": "100", "street_name": "NORTH MAIN AVE"})
    assert short.match_key == long.match_key == "100|N|MAIN|AVE|"


def test_ordinal_street_names_share_a_key():
    numeric, _ = normalize_fields({"address": "601 NE 1st Ave"})
    spelled, _ = normalize_fields({"address": "601 Northeast First Avenue"})
    assert numeric.match_key == spelled.match_key
    assert numeric.street_name == "1"


def test_unit_marker_is_not_part_of_street_name():
    components, _ = normalize_fields({"address": "55 Elm St #4B"})
    assert components.street_name == "ELM"
    assert components.unit_designator == "#"
    assert components.unit_value == "4B"


@pytest.mark.parametrize(
    "address, street_name, street_type",
    [
        ("100 Level Ave", "LEVEL", "AVE"),
        ("100 Space Center Dr", "SPACE CENTER", "DR"),
        ("12 Building Rd", "BUILDING", "RD"),
        ("8 Trailer Park Ln", "TRAILER PARK", "LN"),
    ],
)
def test_designator_words_without_a_value_stay_in_street_name(address, street_name, street_type):
    components, _ = normalize_fields({"address": address})
    assert components.street_name == street_name
    assert components.street_type == street_type
    assert components.unit_designator == ""
    assert components.unit_value == ""


def test_designator_word_in_street_name_does_not_hide_a_later_unit():
    components, _ = normalize_fields({"address": "100 Level Ave Apt 4, Springfield"})
    assert components.street_name == "LEVEL"
    assert components.unit_designator == "APT"
    assert components.unit_value == "4"
    assert components.city == "SPRINGFIELD"


def test_street_named_after_a_direction():
    components, _ = normalize_fields({"house": "10", "street": "North St"})
    assert components.pre_directional == ""
    assert components.street_name == "NORTH"
    assert components.street_type == "ST"


def test_house_number_is_inferred_from_street_field():
    components, _ = normalize_fields({"street": "742 Evergreen Terrace"})
    assert components.house_number == 742
    assert components.street_name == "EVERGREEN"
    assert components.street_type == "TER"


def test_missing_postal_code_is_not_an_error():
    components, _ = normalize_fields({"house": "100", "street": "Main St", "city": "Medford"})
    assert components.postal_code == ""
    assert components.city == "MEDFORD"


def test_missing_house_number_is_malformed():
    with pytest.raises(MalformedAddress) as excinfo:
        normalize_fields({"street_name": "Main St"}, record_id="r-1")
    assert excinfo.value.missing == ("house_number",)
    assert excinfo.value.record_id == "r-1"


def test_missing_street_name_is_malformed():
    with pytest.raises(MalformedAddress) as excinfo:
        normalize_fields({"house_number": "12"})
    assert excinfo.value.missing == ("street_name",)


@pytest.mark.parametrize(
    "fields",
    [
        {"address": "100-102 N Main St Apt 4, Springfield, Oregon 97477"},
        {"address": "12 1/2 W 3rd Ave NE"},
        {"house": "7", "street": "Rogue River Hwy", "unit": "Ste. 200", "state": "oregon"},
    ],
)
def test_normalization_is_idempotent(fields):
    first, _ = normalize_fields(fields)
    second, _ = normalize_fields(first.to_fields())
    assert second == first


def test_normalize_record_carries_notes_and_geometry():
    record = RawAddressRecord("r-9", {"address": "20-24 Pine Ln"})
    normalized = normalize_record(record)
    assert normalized.record_id == "r-9"
    assert normalized.address.house_number == 20
    assert normalized.notes == (RANGE_ADDRESS_NOTE,)
    assert normalized.geometry is None
