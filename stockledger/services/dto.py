"""Data Transfer Objects for the service layer.

This module provides the request and result structures exchanged with the
posting engine and the recipe resolver:

- Movement requests: IntakeRawMaterial, WithdrawFinishedGood, Adjustment,
  ProduceFinishedGood (together, MovementRequest)
- PostedMovement / PostingResult: what a posting returns
- RecipeLine / Recipe: a normalized bill-of-materials
- ComponentInput: one line submitted to upsert_recipe

Request quantities are taken as given (int, str, float or Decimal); the
posting engine parses and validates them so a bad value comes back as an
InvalidQuantityError result rather than an exception at construction time.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, List, Optional, Union

from stockledger.services.exceptions import PostingError


# =============================================================================
# Movement Requests
# =============================================================================


@dataclass(frozen=True)
class IntakeRawMaterial:
    """Receive raw material into stock (delta = +quantity)."""

    item_id: int
    quantity: Any
    note: Optional[str] = None


@dataclass(frozen=True)
class WithdrawFinishedGood:
    """Remove finished goods from stock (delta = -quantity).

    Fails with InsufficientStockError when quantity exceeds stock on hand.
    """

    item_id: int
    quantity: Any
    note: Optional[str] = None


@dataclass(frozen=True)
class Adjustment:
    """Set an item's stock to an absolute level (delta = target - current).

    Applies to either item kind. A target equal to the current stock is a
    successful no-op that writes nothing.
    """

    item_id: int
    target_stock: Any
    note: Optional[str] = None


@dataclass(frozen=True)
class ProduceFinishedGood:
    """Produce finished goods from their recipe.

    Posts one production movement for the finished good plus one consumption
    movement per recipe component, all in one transaction.
    """

    item_id: int
    quantity: Any
    note: Optional[str] = None


MovementRequest = Union[IntakeRawMaterial, WithdrawFinishedGood, Adjustment, ProduceFinishedGood]


# =============================================================================
# Posting Results
# =============================================================================


@dataclass(frozen=True)
class ConsumedComponent:
    """Audit line of a production movement."""

    item_id: int
    item_code: str
    quantity_consumed: Decimal


@dataclass(frozen=True)
class PostedMovement:
    """A ledger row written by a posting.

    Attributes:
        movement_id: Ledger row ID
        item_id: Item whose stock changed
        item_code: Item code at posting time
        kind: MovementKind value
        quantity: Signed delta
        stock_before: Stock before the movement
        stock_after: Stock after the movement
        user_id: Acting user
        note: Note stored on the row
        production_movement_id: Production row a consumption belongs to
        components: Consumed components (production rows only)
    """

    movement_id: int
    item_id: int
    item_code: str
    kind: str
    quantity: Decimal
    stock_before: Decimal
    stock_after: Decimal
    user_id: str
    note: Optional[str] = None
    production_movement_id: Optional[int] = None
    components: List[ConsumedComponent] = field(default_factory=list)

    @classmethod
    def from_model(cls, movement) -> "PostedMovement":
        """Build from a flushed Movement row."""
        return cls(
            movement_id=movement.id,
            item_id=movement.item_id,
            item_code=movement.item.code,
            kind=movement.kind,
            quantity=movement.quantity,
            stock_before=movement.stock_before,
            stock_after=movement.stock_after,
            user_id=movement.user_id,
            note=movement.note,
            production_movement_id=movement.production_movement_id,
            components=[
                ConsumedComponent(
                    item_id=c.component_item_id,
                    item_code=c.component_code,
                    quantity_consumed=c.quantity_consumed,
                )
                for c in movement.components
            ],
        )


@dataclass
class PostingResult:
    """Outcome of post_movement().

    Exactly one of the following holds:
    - success is True and movements lists the rows written (empty for a
      no-op adjustment)
    - success is False and error holds the PostingError; nothing was written

    Examples:
        result = post_movement(WithdrawFinishedGood(item_id=3, quantity=8), user_id="u1")
        if not result.success:
            show(result.error_kind, str(result.error))
    """

    success: bool
    movements: List[PostedMovement] = field(default_factory=list)
    error: Optional[PostingError] = None

    @classmethod
    def ok(cls, movements: List[PostedMovement]) -> "PostingResult":
        return cls(success=True, movements=list(movements))

    @classmethod
    def failed(cls, error: PostingError) -> "PostingResult":
        return cls(success=False, error=error)

    @property
    def error_kind(self) -> Optional[str]:
        """Error class name, for keying user-facing messages."""
        return type(self.error).__name__ if self.error is not None else None

    @property
    def is_no_op(self) -> bool:
        """True for a successful posting that wrote no ledger rows."""
        return self.success and not self.movements


# =============================================================================
# Recipes
# =============================================================================


@dataclass(frozen=True)
class ComponentInput:
    """One component submitted to upsert_recipe()."""

    raw_material_id: int
    quantity_required: Any


@dataclass(frozen=True)
class RecipeLine:
    """One normalized recipe component."""

    raw_material_id: int
    raw_material_code: str
    quantity_required: Decimal


@dataclass(frozen=True)
class Recipe:
    """A finished good's normalized bill-of-materials.

    Always has at least one component; an empty recipe is represented by None.
    """

    finished_good_id: int
    finished_good_code: str
    components: List[RecipeLine]

    def requirements_for(self, quantity: Decimal) -> List[tuple]:
        """Return (line, quantity * per-unit requirement) for every component."""
        return [(line, quantity * line.quantity_required) for line in self.components]
