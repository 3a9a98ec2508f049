"""
Tests for the text extraction helpers.
"""

import datetime

import pytest

from arrestlead.extract import (
    build_full_name,
    clean_text,
    compute_age,
    extract_all,
    extract_field,
    extract_hidden_field,
    normalize_date,
    normalize_time,
    parse_address,
    parse_money,
    parse_name,
    strip_tags,
)


def test_clean_text():
    """Test whitespace collapsing."""
    assert clean_text("  JOHN \n\t SMITH  ") == "JOHN SMITH"
    assert clean_text(None) == ""
    assert clean_text("") == ""


def test_strip_tags():
    """Test tag removal and entity decoding."""
    assert strip_tags("<td><b>JOHN</b>&nbsp;SMITH</td>") == "JOHN SMITH"
    assert strip_tags("SMITH &amp; SONS") == "SMITH & SONS"
    assert strip_tags(None) == ""


def test_extract_field_first_match():
    """Test that the first non-empty capture wins."""
    block = "<tr><td>Booking Number</td><td>12345</td></tr>"
    assert extract_field(block, [r"Booking #\s*(\d+)", r"Booking Number</td>\s*<td[^>]*>(\d+)<"]) == "12345"


def test_extract_field_single_pattern_is_case_insensitive():
    """Test a single pattern string."""
    assert extract_field("booking number</td><td>777<", r"BOOKING NUMBER</td>\s*<td>(\d+)<") == "777"


def test_extract_field_no_match():
    """Test that a miss returns an empty string."""
    assert extract_field("<td>nothing here</td>", [r"Booking Number:\s*(\d+)"]) == ""
    assert extract_field(None, [r"(\d+)"]) == ""


def test_extract_field_bad_pattern_is_skipped():
    """Test that an invalid regex counts as no match."""
    assert extract_field("Booking 42", [r"(unclosed", r"Booking (\d+)"]) == "42"


def test_extract_all():
    """Test extracting repeated rows."""
    block = "<ul><li>DUI</li><li>RESISTING <b>ARREST</b></li></ul>"
    assert extract_all(block, r"<li>(.*?)</li>") == [("DUI",), ("RESISTING ARREST",)]
    assert extract_all("", r"<li>(.*?)</li>") == []


def test_extract_hidden_field():
    """Test reading hidden form inputs."""
    page = (
        '<form><input type="hidden" name="__VIEWSTATE" value="dDwtMTA4" />'
        '<input type="hidden" id="__EVENTVALIDATION" value="" /></form>'
    )
    assert extract_hidden_field(page, "__VIEWSTATE") == "dDwtMTA4"
    assert extract_hidden_field(page, "__EVENTVALIDATION") == ""
    assert extract_hidden_field(page, "__VIEWSTATEGENERATOR") is None
    assert extract_hidden_field(None, "__VIEWSTATE") is None


@pytest.mark.parametrize(
    "name,expected",
    [
        ("Smith, John Michael Jr.", {"last_name": "Smith", "first_name": "John", "middle_name": "Michael", "suffix": "Jr."}),
        ("John Smith", {"last_name": "Smith", "first_name": "John", "middle_name": "", "suffix": ""}),
        ("SMITH JR, JOHN", {"last_name": "SMITH", "first_name": "JOHN", "middle_name": "", "suffix": "JR"}),
        ("JOHN PAUL JONES III", {"last_name": "JONES", "first_name": "JOHN", "middle_name": "PAUL", "suffix": "III"}),
        ("DE LA CRUZ, MARIA", {"last_name": "DE LA CRUZ", "first_name": "MARIA", "middle_name": "", "suffix": ""}),
    ],
)
def test_parse_name(name, expected):
    """Test name decomposition."""
    parts = parse_name(name)
    for field, value in expected.items():
        assert parts[field] == value


def test_parse_name_full_name_form():
    """Test that the rebuilt full name uses "Last, First Middle Suffix"."""
    assert parse_name("John Michael Smith Jr.")["full_name"] == "Smith, John Michael Jr."
    assert parse_name("MADONNA")["full_name"] == "MADONNA"
    assert parse_name("")["full_name"] == ""


def test_build_full_name():
    """Test building a full name from parts."""
    assert build_full_name("JOHN", "", "SMITH", "") == "SMITH, JOHN"
    assert build_full_name("", "", "", "") == ""


def test_parse_address_zip_only_uses_home_state():
    """Test that a bare zip gets the home state."""
    assert parse_address("33901") == {"street": "", "city": "", "state": "FL", "zip": "33901"}
    assert parse_address("33901", home_state="GA")["state"] == "GA"


def test_parse_address_splits_at_street_type():
    """Test a comma-less address split at the street-type token."""
    assert parse_address("123 Main St Fort Myers FL 33901") == {
        "street": "123 Main St",
        "city": "Fort Myers",
        "state": "FL",
        "zip": "33901",
    }


def test_parse_address_street_type_before_comma():
    """Test a street type followed by a comma and no comma before the state."""
    assert parse_address("123 Main St, Fort Myers FL 33901") == {
        "street": "123 Main St",
        "city": "Fort Myers",
        "state": "FL",
        "zip": "33901",
    }
    assert parse_address("77 Palm Blvd., Cape Coral, FL 33904")["street"] == "77 Palm Blvd."
    assert parse_address("77 Palm Blvd., Cape Coral FL 33904")["city"] == "Cape Coral"


def test_parse_address_comma_without_street_type():
    """Test that a comma separates street and city when no street type is present."""
    assert parse_address("12 Bayview, Punta Gorda FL 33950") == {
        "street": "12 Bayview",
        "city": "Punta Gorda",
        "state": "FL",
        "zip": "33950",
    }


def test_parse_address_full():
    """Test the "street, city, ST zip" form."""
    assert parse_address("4500 Oak Ave, Naples, fl 34102-1234") == {
        "street": "4500 Oak Ave",
        "city": "Naples",
        "state": "FL",
        "zip": "34102-1234",
    }


def test_parse_address_city_state_zip():
    """Test the "city, ST zip" form."""
    assert parse_address("Punta Gorda, FL 33950") == {
        "street": "",
        "city": "Punta Gorda",
        "state": "FL",
        "zip": "33950",
    }


def test_parse_address_street_zip():
    """Test a street followed by a zip."""
    assert parse_address("123 MAIN ST 33901") == {"street": "123 MAIN ST", "city": "", "state": "FL", "zip": "33901"}


def test_parse_address_fallback():
    """Test that unrecognized text becomes the street."""
    assert parse_address("HOMELESS") == {"street": "HOMELESS", "city": "", "state": "", "zip": ""}
    assert parse_address(None) == {"street": "", "city": "", "state": "", "zip": ""}


@pytest.mark.parametrize(
    "text,expected",
    [
        ("10/27/2025", "2025-10-27"),
        ("1/5/2025", "2025-01-05"),
        ("2025-10-27T08:30:00", "2025-10-27"),
        ("Oct 27, 2025", "2025-10-27"),
        ("13/45/2025", "13/45/2025"),
        ("not a date", "not a date"),
        ("", ""),
    ],
)
def test_normalize_date(text, expected):
    """Test date normalization."""
    assert normalize_date(text) == expected


@pytest.mark.parametrize(
    "text,expected",
    [
        ("3:05:00 PM", "15:05"),
        ("12:15 AM", "00:15"),
        ("12:30 PM", "12:30"),
        ("08:30", "08:30"),
        ("noon", "noon"),
    ],
)
def test_normalize_time(text, expected):
    """Test time normalization."""
    assert normalize_time(text) == expected


def test_parse_money():
    """Test dollar amount parsing."""
    assert parse_money("$1,500.00") == 1500.0
    assert parse_money(250) == 250.0
    assert parse_money("0") == 0.0
    assert parse_money("-5.00") is None
    assert parse_money("N/A") is None
    assert parse_money("") is None
    assert parse_money(None) is None


def test_compute_age():
    """Test age at a reference date."""
    assert compute_age("1990-05-01", "2025-10-27") == 35
    assert compute_age("1990-11-01", "2025-10-27") == 34
    assert compute_age("1990-05-01", datetime.date(2025, 5, 1)) == 35
    assert compute_age(None, "2025-10-27") is None
    assert compute_age("05/01/1990", "2025-10-27") is None
