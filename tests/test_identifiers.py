from __future__ import annotations

from decimal import Decimal

import pytest

from app.domain.errors import ValidationError
from app.domain.identifiers import MAX_IDENTIFIER, Identifier, require_identifier
from app.domain.result import Err, Ok


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(1, 1), (42, 42), ("7", 7), (" 15 ", 15), ("+4", 4), ("007", 7), (3.0, 3), (Decimal("9"), 9)],
)
def test_parse_identifier_accepts_positive_integers(raw: object, expected: int) -> None:
    parsed = Identifier.parse(raw)
    assert isinstance(parsed, Ok)
    assert parsed.value.value == expected


@pytest.mark.parametrize(
    "raw",
    [
        0,
        -1,
        "-5",
        "0",
        1.5,
        float("nan"),
        float("inf"),
        "abc",
        "",
        "NaN",
        "12.0",
        "1e3",
        "1E3",
        "1e9000000",
        "0x10",
        None,
        True,
        False,
        [1],
    ],
)
def test_parse_identifier_rejects_invalid_input(raw: object) -> None:
    parsed = Identifier.parse(raw, "plan_id")
    assert isinstance(parsed, Err)
    assert isinstance(parsed.error, ValidationError)
    assert "plan_id" in parsed.error.message


@pytest.mark.parametrize(
    "raw",
    [MAX_IDENTIFIER + 1, 2**63, str(2**63), "9" * 5000, Decimal("1e9000000"), 1e300],
)
def test_parse_identifier_rejects_values_beyond_key_range(raw: object) -> None:
    parsed = Identifier.parse(raw, "user_id")
    assert isinstance(parsed, Err)
    assert parsed.error.message == f"user_id must be at most {MAX_IDENTIFIER}"


def test_largest_key_is_accepted() -> None:
    assert Identifier.parse(MAX_IDENTIFIER).unwrap().value == MAX_IDENTIFIER
    assert Identifier.parse(str(MAX_IDENTIFIER)).unwrap().value == MAX_IDENTIFIER


def test_identifier_constructor_refuses_out_of_range_values() -> None:
    with pytest.raises(ValidationError):
        Identifier(0)
    with pytest.raises(ValidationError):
        Identifier(-3)
    with pytest.raises(ValidationError):
        Identifier(MAX_IDENTIFIER + 1)
    assert int(Identifier(5)) == 5
    assert str(Identifier(5)) == "5"


def test_require_identifier_raises_validation_error() -> None:
    assert require_identifier("8", "company_id") == 8
    with pytest.raises(ValidationError, match="company_id"):
        require_identifier("x", "company_id")


def test_result_unwrap() -> None:
    ok = Ok(3)
    assert ok.is_ok() and not ok.is_err()
    assert ok.unwrap() == 3

    err = Err(ValidationError("bad"))
    assert err.is_err() and not err.is_ok()
    with pytest.raises(ValidationError, match="bad"):
        err.unwrap()
