"""Service layer exception classes for Stock Ledger.

This module defines all custom exceptions used by the service layer to provide
consistent error handling across the application.

Exception Hierarchy:
    ServiceError (base)
    ├── NotFoundError
    │   ├── ItemNotFoundError
    │   └── MovementNotFoundError
    ├── ValidationError
    │   ├── InvalidQuantityError
    │   └── WrongItemKindError
    ├── ItemCodeExistsError
    ├── ItemInUseError
    ├── InsufficientStockError
    ├── NoRecipeError
    ├── PersistenceError
    └── LedgerImmutableError

The posting engine returns these as values inside a PostingResult rather
than raising them; every other service raises them.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions should inherit from this class.
    """

    pass


# Errors a posting can report
PostingError = ServiceError


class NotFoundError(ServiceError):
    """Raised when a requested record does not exist."""

    pass


class ItemNotFoundError(NotFoundError):
    """Raised when an item cannot be found by ID.

    Example:
        >>> raise ItemNotFoundError(123)
        ItemNotFoundError: Item with ID 123 not found
    """

    def __init__(self, item_id):
        self.item_id = item_id
        super().__init__(f"Item with ID {item_id} not found")


class MovementNotFoundError(NotFoundError):
    """Raised when a ledger movement cannot be found by ID."""

    def __init__(self, movement_id: int):
        self.movement_id = movement_id
        super().__init__(f"Movement with ID {movement_id} not found")


class ValidationError(ServiceError):
    """Raised when data validation fails.

    Args:
        errors: List of validation messages (a single string is accepted)
    """

    def __init__(self, errors):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__(f"Validation failed: {'; '.join(self.errors)}")


class InvalidQuantityError(ValidationError):
    """Raised when a quantity is missing, malformed or out of range."""

    def __init__(self, field_name: str, value, reason: str):
        self.field_name = field_name
        self.value = value
        self.reason = reason
        super().__init__(f"{field_name}: {reason} (got {value!r})")


class WrongItemKindError(ValidationError):
    """Raised when an operation targets an item of the wrong kind.

    Example:
        >>> raise WrongItemKindError("PT-001", "raw_material", "finished_good")
        WrongItemKindError: Validation failed: Item 'PT-001' is a finished_good, expected raw_material
    """

    def __init__(self, item_code: str, expected: str, actual: str):
        self.item_code = item_code
        self.expected = expected
        self.actual = actual
        super().__init__(f"Item '{item_code}' is a {actual}, expected {expected}")


class ItemCodeExistsError(ServiceError):
    """Raised when attempting to create or rename an item onto an existing code."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Item with code '{code}' already exists")


class ItemInUseError(ServiceError):
    """Raised when attempting to delete an item that has ledger history.

    Args:
        item_code: Code of the item being deleted
        movement_count: Number of ledger rows referencing the item
    """

    def __init__(self, item_code: str, movement_count: int):
        self.item_code = item_code
        self.movement_count = movement_count
        super().__init__(
            f"Cannot delete item '{item_code}': referenced by {movement_count} movement(s)"
        )


@dataclass(frozen=True)
class Shortfall:
    """One item that lacks stock for a posting."""

    item_id: int
    item_code: str
    required: Decimal
    available: Decimal

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "item_code": self.item_code,
            "required": self.required,
            "available": self.available,
        }


class InsufficientStockError(ServiceError):
    """Raised when one or more items lack the stock an operation needs.

    Every shortfall is listed, not just the first one found.

    Example:
        >>> raise InsufficientStockError([Shortfall(7, "MP-B", Decimal("12"), Decimal("10"))])
        InsufficientStockError: Insufficient stock: MP-B (required 12, available 10)
    """

    def __init__(self, shortfalls: Sequence[Shortfall]):
        self.shortfalls: List[Shortfall] = list(shortfalls)
        details = ", ".join(
            f"{s.item_code} (required {s.required}, available {s.available})"
            for s in self.shortfalls
        )
        super().__init__(f"Insufficient stock: {details}")


class NoRecipeError(ServiceError):
    """Raised when production is requested for a finished good without a usable recipe."""

    def __init__(self, item_code: str):
        self.item_code = item_code
        super().__init__(f"Finished good '{item_code}' has no usable recipe")


class PersistenceError(ServiceError):
    """Raised when the underlying store fails.

    The original exception is kept for diagnostics and its message is
    carried verbatim.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")


class LedgerImmutableError(ServiceError):
    """Raised when a flush would modify or delete a ledger row."""

    def __init__(self, record: str, action: str):
        self.record = record
        self.action = action
        super().__init__(f"Ledger records are append-only: cannot {action} {record}")
