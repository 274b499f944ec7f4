from __future__ import annotations

import pytest

from ahaar.core.errors import ValidationError
from ahaar.models.dining_table import DiningTable
from ahaar.services.resources import generate_external_id, pagination_meta, validate_ids
from ahaar.services.validation import (
    normalize_identifier,
    validate_email,
    validate_mobile,
    validate_non_negative_number,
    validate_password,
    validate_positive_number,
    validate_string,
)
from ahaar.utils.slug import slugify
from tests.fixtures_data import BRAND_A, make_session


def test_pagination_meta_edges():
    assert pagination_meta(10, 1, None) is None
    assert pagination_meta(10, 1, 5) == {"totalPages": 2, "currentPage": 1, "previousPage": None, "nextPage": 2}
    assert pagination_meta(10, 2, 5) == {"totalPages": 2, "currentPage": 2, "previousPage": 1, "nextPage": None}
    assert pagination_meta(0, 1, 5) == {"totalPages": 0, "currentPage": 1, "previousPage": None, "nextPage": None}


def test_external_id_counts_rows_and_adds_random_hex():
    db = make_session()
    db.add(DiningTable(table_id="1-x", brand_id=BRAND_A, table_name="T1", table_slug="t1"))
    db.commit()

    first = generate_external_id(db, DiningTable)
    second = generate_external_id(db, DiningTable)

    prefix, suffix = first.split("-", 1)
    assert prefix == "2"
    assert len(suffix) == 24
    int(suffix, 16)
    assert first != second


def test_string_rules_trim_and_bound_length():
    assert validate_string("  Patio ", "Table Name", 2, 30) == "Patio"
    with pytest.raises(ValidationError):
        validate_string("x" * 31, "Table Name", 2, 30)
    with pytest.raises(ValidationError):
        validate_string(42, "Table Name", 2, 30)


def test_mobile_rules():
    assert validate_mobile(" 01711111111 ") == "01711111111"
    with pytest.raises(ValidationError, match="must be 11 characters"):
        validate_mobile("0171111111")
    with pytest.raises(ValidationError, match="Invalid mobile number"):
        validate_mobile("+8801711111")


def test_email_is_normalized_to_lowercase():
    assert validate_email(" Owner@Example.COM ") == "owner@example.com"
    with pytest.raises(ValidationError):
        validate_email("not-an-email")


def test_password_rules_strip_whitespace_first():
    assert validate_password(" pass 1234 ") == "pass1234"
    with pytest.raises(ValidationError):
        validate_password("short1")
    with pytest.raises(ValidationError):
        validate_password("12345678")
    with pytest.raises(ValidationError):
        validate_password("a1" * 16)


def test_number_rules():
    assert validate_positive_number("12.5", "Price") == 12.5
    assert validate_non_negative_number(0, "Discount") == 0
    for bad in (0, -1, "abc", True, float("nan")):
        with pytest.raises(ValidationError):
            validate_positive_number(bad, "Price")


def test_identifier_normalization():
    assert normalize_identifier("  John Doe@Mail.com ") == "johndoe@mail.com"


def test_ids_payload_rules():
    assert validate_ids([" 1-a ", "2-b"]) == ["1-a", "2-b"]
    with pytest.raises(ValidationError):
        validate_ids([])
    with pytest.raises(ValidationError):
        validate_ids(["1-a", ""])


def test_slugify():
    assert slugify("  Café Corner #1 ") == "cafe-corner-1"
    assert slugify("") == ""
