import math

from portal_api.models import ProjectContact
from portal_api.normalize import (
    empty_to_none,
    normalize_contact,
    normalize_number,
    normalize_string,
    parse_delimited_list,
    parse_location_object,
    parse_numeric_id,
)


def test_normalize_string_trims_and_drops_blank():
    assert normalize_string("  Bridge Repair \n") == "Bridge Repair"
    assert normalize_string("   ") is None
    assert normalize_string(42) is None


def test_normalize_number_rejects_non_finite_and_bool():
    assert normalize_number(12.5) == 12.5
    assert normalize_number(0) == 0
    assert normalize_number(math.nan) is None
    assert normalize_number(math.inf) is None
    assert normalize_number(True) is None
    assert normalize_number("12") is None


def test_normalize_contact_keeps_only_filled_fields():
    contact = normalize_contact({"name": " Ada ", "email": "", "phone": None, "organization": "DOT"})
    assert contact == {"name": "Ada", "organization": "DOT"}


def test_normalize_contact_accepts_models_and_empty():
    assert normalize_contact(ProjectContact(email=" a@b.gov ")) == {"email": "a@b.gov"}
    assert normalize_contact({"name": "  "}) is None
    assert normalize_contact("not a contact") is None


def test_parse_delimited_list_splits_on_all_separators():
    assert parse_delimited_list("CE-1, CE-2;CE-3\r\nCE-4\n\n,") == ["CE-1", "CE-2", "CE-3", "CE-4"]
    assert parse_delimited_list("   ") == []
    assert parse_delimited_list(None) == []


def test_parse_numeric_id_uses_leading_integer():
    assert parse_numeric_id("42") == 42
    assert parse_numeric_id(" 17abc") == 17
    assert parse_numeric_id("abc") is None
    assert parse_numeric_id(7.0) == 7
    assert parse_numeric_id(7.5) is None
    assert parse_numeric_id(True) is None


def test_parse_location_object_keeps_invalid_json_verbatim():
    parsed = parse_location_object('{"type": "Point", "coordinates": [1, 2]}')
    assert parsed.value == {"type": "Point", "coordinates": [1, 2]}
    assert parsed.raw is None

    invalid = parse_location_object("{not json")
    assert invalid.value is None
    assert invalid.raw == "{not json"

    assert parse_location_object("  ").value is None


def test_empty_to_none():
    assert empty_to_none([]) is None
    assert empty_to_none({}) is None
    assert empty_to_none(" ") is None
    assert empty_to_none([1]) == [1]
    assert empty_to_none(0) == 0
