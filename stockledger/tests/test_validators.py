"""Tests for input validators."""

from decimal import Decimal

import pytest

from stockledger.services.exceptions import InvalidQuantityError, ValidationError
from stockledger.utils.validators import (
    parse_non_negative_quantity,
    parse_positive_quantity,
    parse_quantity,
    quantize_quantity,
    validate_code,
    validate_note,
    validate_user_id,
)


class TestParseQuantity:
    """Tests for decimal quantity parsing."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (5, Decimal("5")),
            ("2.5", Decimal("2.5")),
            (" 3 ", Decimal("3")),
            (0.1, Decimal("0.1")),
            (Decimal("1.23456"), Decimal("1.2346")),
            ("-4", Decimal("-4")),
        ],
    )
    def test_valid_values(self, value, expected):
        assert parse_quantity(value) == expected

    def test_result_is_quantized(self):
        assert parse_quantity("1.5").as_tuple().exponent == -4

    @pytest.mark.parametrize("value", [None, "", "   ", "abc", True, "inf", "NaN", "1e20"])
    def test_invalid_values(self, value):
        with pytest.raises(InvalidQuantityError):
            parse_quantity(value)

    def test_error_names_field(self):
        with pytest.raises(InvalidQuantityError) as exc_info:
            parse_quantity("abc", "target_stock")

        assert exc_info.value.field_name == "target_stock"
        assert "target_stock" in str(exc_info.value)

    def test_invalid_quantity_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            parse_quantity("abc")

    def test_positive(self):
        assert parse_positive_quantity("0.0001") == Decimal("0.0001")
        with pytest.raises(InvalidQuantityError):
            parse_positive_quantity(0)
        with pytest.raises(InvalidQuantityError):
            parse_positive_quantity("0.00004")

    def test_non_negative(self):
        assert parse_non_negative_quantity(0) == Decimal("0")
        with pytest.raises(InvalidQuantityError):
            parse_non_negative_quantity("-0.01")

    def test_quantize_rounds_half_up(self):
        assert quantize_quantity(Decimal("0.00005")) == Decimal("0.0001")
        assert quantize_quantity(Decimal("0.00004")) == Decimal("0")


class TestTextValidators:
    """Tests for code, note and user id validation."""

    def test_code_stripped(self):
        assert validate_code("  MP-1 ") == "MP-1"

    @pytest.mark.parametrize("code", [None, "", "  ", "x" * 51])
    def test_invalid_code(self, code):
        with pytest.raises(ValidationError):
            validate_code(code)

    def test_blank_note_becomes_none(self):
        assert validate_note(None) is None
        assert validate_note("   ") is None
        assert validate_note(" counted ") == "counted"

    def test_note_too_long(self):
        with pytest.raises(ValidationError):
            validate_note("n" * 501)

    def test_user_id(self):
        assert validate_user_id(" 3f2a ") == "3f2a"
        assert validate_user_id(7) == "7"
        for bad in (None, "", False, "u" * 65):
            with pytest.raises(ValidationError):
                validate_user_id(bad)
