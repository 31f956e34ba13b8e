"""
Input validation functions for the Stock Ledger application.

Quantities are parsed into Decimal and quantized to the ledger's precision
before any comparison, so validation and storage agree on the value.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from stockledger.services.exceptions import InvalidQuantityError, ValidationError

from .constants import (
    ERROR_INVALID_NON_NEGATIVE,
    ERROR_INVALID_NUMBER,
    ERROR_INVALID_POSITIVE,
    ERROR_REQUIRED_FIELD,
    ERROR_TOO_LONG,
    MAX_CODE_LENGTH,
    MAX_NOTE_LENGTH,
    MAX_QUANTITY,
    MAX_USER_ID_LENGTH,
    QUANTITY_QUANTUM,
)


def quantize_quantity(value: Decimal) -> Decimal:
    """Round a quantity to the ledger's four decimal places."""
    return value.quantize(QUANTITY_QUANTUM, rounding=ROUND_HALF_UP)


def parse_quantity(value, field_name: str = "quantity") -> Decimal:
    """
    Convert user input into a quantized Decimal.

    Floats are converted through str() so 0.1 stays 0.1.

    Args:
        value: int, Decimal, float or numeric string
        field_name: Name of the field for error messages

    Returns:
        Quantized Decimal

    Raises:
        InvalidQuantityError: If the value is missing, not numeric, not finite
            or larger than the column can hold
    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        raise InvalidQuantityError(field_name, value, ERROR_REQUIRED_FIELD)
    if isinstance(value, bool):
        raise InvalidQuantityError(field_name, value, ERROR_INVALID_NUMBER)

    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidQuantityError(field_name, value, ERROR_INVALID_NUMBER)

    if not number.is_finite():
        raise InvalidQuantityError(field_name, value, ERROR_INVALID_NUMBER)

    # Checked before quantizing too; quantize() fails on very large exponents
    if abs(number) > MAX_QUANTITY or abs(quantize_quantity(number)) > MAX_QUANTITY:
        raise InvalidQuantityError(field_name, value, f"Must not exceed {MAX_QUANTITY}")
    return quantize_quantity(number)


def parse_positive_quantity(value, field_name: str = "quantity") -> Decimal:
    """Parse a quantity that must be greater than zero after rounding."""
    number = parse_quantity(value, field_name)
    if number <= 0:
        raise InvalidQuantityError(field_name, value, ERROR_INVALID_POSITIVE)
    return number


def parse_non_negative_quantity(value, field_name: str = "quantity") -> Decimal:
    """Parse a quantity that must be zero or greater."""
    number = parse_quantity(value, field_name)
    if number < 0:
        raise InvalidQuantityError(field_name, value, ERROR_INVALID_NON_NEGATIVE)
    return number


def validate_code(code: Optional[str]) -> str:
    """
    Validate and normalize an item code.

    Returns:
        The stripped code

    Raises:
        ValidationError: If empty or too long
    """
    if code is None or not str(code).strip():
        raise ValidationError(f"code: {ERROR_REQUIRED_FIELD}")
    code = str(code).strip()
    if len(code) > MAX_CODE_LENGTH:
        raise ValidationError(f"code: {ERROR_TOO_LONG.format(max_length=MAX_CODE_LENGTH)}")
    return code


def validate_note(note: Optional[str]) -> Optional[str]:
    """Normalize an optional free-text note; blank notes become None."""
    if note is None:
        return None
    note = str(note).strip()
    if not note:
        return None
    if len(note) > MAX_NOTE_LENGTH:
        raise ValidationError(f"note: {ERROR_TOO_LONG.format(max_length=MAX_NOTE_LENGTH)}")
    return note


def validate_user_id(user_id) -> str:
    """
    Validate the acting user identifier attached to a posting.

    The identifier is opaque (auth UUID or integer); it is stored as text.

    Raises:
        ValidationError: If missing or too long
    """
    if user_id is None or isinstance(user_id, bool) or not str(user_id).strip():
        raise ValidationError(f"user_id: {ERROR_REQUIRED_FIELD}")
    user_id = str(user_id).strip()
    if len(user_id) > MAX_USER_ID_LENGTH:
        raise ValidationError(
            f"user_id: {ERROR_TOO_LONG.format(max_length=MAX_USER_ID_LENGTH)}"
        )
    return user_id
