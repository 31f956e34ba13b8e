"""
Stock Posting Service - validates and posts stock movements.

This module is the only writer of Item.current_stock. It provides:
- post_movement(): turn one movement request into ledger rows and stock updates
- check_can_produce(): dry-run stock check for a production request

Posting rules per request type:
- IntakeRawMaterial: raw materials only, quantity > 0, delta = +quantity
- WithdrawFinishedGood: finished goods only, quantity > 0, delta = -quantity,
  rejected when stock on hand is lower than quantity
- Adjustment: any item, target_stock >= 0, delta = target - current; a zero
  delta succeeds without writing a row
- ProduceFinishedGood: finished goods only, quantity > 0; requires a usable
  recipe and enough stock of every component. Writes one production row
  (+quantity, with the consumed-component audit lines) and one consumption
  row per component (-quantity x per-unit requirement)

Transaction boundary: every posting is one atomic unit. All validation
happens before the first write, and a production's N+1 movements commit or
roll back together. There is no partial-batch outcome.

Concurrency: the items a posting touches are re-read inside the transaction
with SELECT ... FOR UPDATE, so stock_before is always the committed stock
and concurrent postings on one item serialize. Lock order is the finished
good first (upsert_recipe locks it too, which keeps the recipe stable), then
components in ascending id order. On SQLite the engine opens transactions
with BEGIN IMMEDIATE instead (see database.py).

Results: post_movement() never raises for domain or store failures; it
returns a PostingResult whose error is one of the ServiceError subclasses
(ItemNotFoundError, WrongItemKindError, InvalidQuantityError,
InsufficientStockError, NoRecipeError, ValidationError, PersistenceError).
"""

import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stockledger.models import Item, ItemKind, Movement, MovementComponent, MovementKind
from stockledger.services import recipe_service
from stockledger.services.database import session_scope
from stockledger.services.dto import (
    Adjustment,
    IntakeRawMaterial,
    MovementRequest,
    PostedMovement,
    PostingResult,
    ProduceFinishedGood,
    Recipe,
    RecipeLine,
    WithdrawFinishedGood,
)
from stockledger.services.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    ItemNotFoundError,
    NoRecipeError,
    PersistenceError,
    ServiceError,
    Shortfall,
    ValidationError,
    WrongItemKindError,
)
from stockledger.services.logging_utils import get_service_logger, log_operation
from stockledger.utils.constants import MAX_QUANTITY
from stockledger.utils.validators import (
    parse_non_negative_quantity,
    parse_positive_quantity,
    quantize_quantity,
    validate_note,
    validate_user_id,
)

logger = get_service_logger(__name__)


# =============================================================================
# Public API
# =============================================================================


def post_movement(
    request: MovementRequest,
    user_id,
    *,
    session: Optional[Session] = None,
) -> PostingResult:
    """
    Validate and post one movement request.

    Args:
        request: IntakeRawMaterial, WithdrawFinishedGood, Adjustment or
            ProduceFinishedGood
        user_id: Acting user identifier (required; stored on every row)
        session: Optional caller-owned session. The posting then runs in a
            SAVEPOINT on that session: a failed posting rolls back only its
            own writes, and the caller still owns the final commit.

    Returns:
        PostingResult with the written movements, or with the error that
        prevented the posting (in which case nothing was written)

    Example:
        >>> result = post_movement(IntakeRawMaterial(item_id=1, quantity=25), user_id="u-1")
        >>> result.success, result.movements[0].stock_after
        (True, Decimal('25.0000'))
    """
    try:
        if session is not None:
            with session.begin_nested():
                posted = _post_movement_impl(request, user_id, session)
        else:
            with session_scope() as session:
                posted = _post_movement_impl(request, user_id, session)
    except ServiceError as e:
        log_operation(
            logger,
            operation="post_movement",
            outcome=type(e).__name__,
            level=logging.WARNING,
            request_type=type(request).__name__,
            item_id=getattr(request, "item_id", None),
            user_id=user_id,
            error=str(e),
        )
        return PostingResult.failed(e)
    except SQLAlchemyError as e:
        error = PersistenceError(str(e), original_error=e)
        log_operation(
            logger,
            operation="post_movement",
            outcome="PersistenceError",
            level=logging.ERROR,
            request_type=type(request).__name__,
            item_id=getattr(request, "item_id", None),
            user_id=user_id,
            error=str(e),
        )
        return PostingResult.failed(error)

    log_operation(
        logger,
        operation="post_movement",
        outcome="success" if posted else "no_op",
        request_type=type(request).__name__,
        item_id=request.item_id,
        user_id=user_id,
        movement_ids=[m.movement_id for m in posted],
    )
    return PostingResult.ok(posted)


def check_can_produce(
    finished_good_id: int,
    quantity,
    *,
    session: Optional[Session] = None,
) -> Dict:
    """
    Check whether a production request would pass the stock check.

    Read-only; takes no locks, so the answer can be stale by the time a
    posting runs. post_movement() repeats the check under lock.

    Args:
        finished_good_id: Item ID of the finished good
        quantity: Units to produce
        session: Optional database session (uses session_scope if not provided)

    Returns:
        Dict with keys:
            - "can_produce" (bool): True if every component has enough stock
            - "missing" (List[Dict]): item_id, item_code, required, available
              for each short component
            - "requirements" (List[Dict]): item_id, item_code, required for
              every component

    Raises:
        InvalidQuantityError: If quantity is not positive
        ItemNotFoundError: If the finished good doesn't exist
        WrongItemKindError: If the item is not a finished good
        NoRecipeError: If the finished good has no usable recipe
    """
    if session is not None:
        return _check_can_produce_impl(finished_good_id, quantity, session)
    with session_scope() as session:
        return _check_can_produce_impl(finished_good_id, quantity, session)


def _check_can_produce_impl(finished_good_id: int, quantity, session: Session) -> Dict:
    """Implementation of check_can_produce that uses provided session."""
    quantity = parse_positive_quantity(quantity)
    finished_good = session.get(Item, finished_good_id)
    if finished_good is None:
        raise ItemNotFoundError(finished_good_id)
    _require_kind(finished_good, ItemKind.FINISHED_GOOD)
    recipe = _resolve_usable_recipe(finished_good, session)

    requirements = _component_requirements(recipe, quantity)
    components = {
        item.id: item
        for item in session.query(Item).filter(
            Item.id.in_([line.raw_material_id for line, _ in requirements])
        )
    }
    shortfalls = _find_shortfalls(requirements, components)

    return {
        "can_produce": not shortfalls,
        "missing": [s.to_dict() for s in shortfalls],
        "requirements": [
            {
                "item_id": line.raw_material_id,
                "item_code": line.raw_material_code,
                "required": required,
            }
            for line, required in requirements
        ],
    }


# =============================================================================
# Posting Implementation
# =============================================================================


def _post_movement_impl(request, user_id, session: Session) -> List[PostedMovement]:
    """Validate and write one request within the given session."""
    handler = _HANDLERS.get(type(request))
    if handler is None:
        raise ValidationError(f"Unsupported movement request: {type(request).__name__}")

    user_id = validate_user_id(user_id)
    note = validate_note(request.note)

    movements = handler(request, user_id, note, session)
    session.flush()
    return [PostedMovement.from_model(m) for m in movements]


def _post_intake(
    request: IntakeRawMaterial, user_id: str, note: Optional[str], session: Session
) -> List[Movement]:
    quantity = parse_positive_quantity(request.quantity)
    item = _lock_items(session, [request.item_id])[request.item_id]
    _require_kind(item, ItemKind.RAW_MATERIAL)
    return [_append_movement(session, item, MovementKind.INTAKE, quantity, user_id, note)]


def _post_withdrawal(
    request: WithdrawFinishedGood, user_id: str, note: Optional[str], session: Session
) -> List[Movement]:
    quantity = parse_positive_quantity(request.quantity)
    item = _lock_items(session, [request.item_id])[request.item_id]
    _require_kind(item, ItemKind.FINISHED_GOOD)

    if item.current_stock < quantity:
        raise InsufficientStockError(
            [Shortfall(item.id, item.code, quantity, item.current_stock)]
        )
    return [_append_movement(session, item, MovementKind.WITHDRAWAL, -quantity, user_id, note)]


def _post_adjustment(
    request: Adjustment, user_id: str, note: Optional[str], session: Session
) -> List[Movement]:
    target = parse_non_negative_quantity(request.target_stock, "target_stock")
    item = _lock_items(session, [request.item_id])[request.item_id]

    delta = target - item.current_stock
    if delta == 0:
        return []
    return [_append_movement(session, item, MovementKind.ADJUSTMENT, delta, user_id, note)]


def _post_production(
    request: ProduceFinishedGood, user_id: str, note: Optional[str], session: Session
) -> List[Movement]:
    quantity = parse_positive_quantity(request.quantity)
    finished_good = _lock_items(session, [request.item_id])[request.item_id]
    _require_kind(finished_good, ItemKind.FINISHED_GOOD)
    recipe = _resolve_usable_recipe(finished_good, session)

    requirements = _component_requirements(recipe, quantity)
    components = _lock_items(session, [line.raw_material_id for line, _ in requirements])

    shortfalls = _find_shortfalls(requirements, components)
    if shortfalls:
        raise InsufficientStockError(shortfalls)

    production = _append_movement(
        session, finished_good, MovementKind.PRODUCTION, quantity, user_id, note
    )
    for line, required in requirements:
        production.components.append(
            MovementComponent(
                component_item_id=line.raw_material_id,
                component_code=components[line.raw_material_id].code,
                quantity_consumed=required,
            )
        )

    consumption_note = f"Consumed for production of {finished_good.code}"
    if note:
        consumption_note = f"{consumption_note}: {note}"

    consumptions = [
        _append_movement(
            session,
            components[line.raw_material_id],
            MovementKind.CONSUMPTION,
            -required,
            user_id,
            consumption_note,
            production=production,
        )
        for line, required in requirements
    ]
    return [production] + consumptions


_HANDLERS = {
    IntakeRawMaterial: _post_intake,
    WithdrawFinishedGood: _post_withdrawal,
    Adjustment: _post_adjustment,
    ProduceFinishedGood: _post_production,
}


# =============================================================================
# Helpers
# =============================================================================


def _lock_items(session: Session, item_ids: Iterable[int]) -> Dict[int, Item]:
    """
    Re-read items with a row lock, in ascending id order.

    populate_existing() overwrites any copy already in the session's
    identity map, so the returned stock is the committed value.

    Raises:
        ItemNotFoundError: For the first requested id that doesn't exist
    """
    requested = list(dict.fromkeys(item_ids))
    items = (
        session.query(Item)
        .filter(Item.id.in_(requested))
        .order_by(Item.id)
        .with_for_update()
        .populate_existing()
        .all()
    )
    found = {item.id: item for item in items}
    for item_id in requested:
        if item_id not in found:
            raise ItemNotFoundError(item_id)
    return found


def _require_kind(item: Item, kind: ItemKind) -> None:
    if item.kind != kind.value:
        raise WrongItemKindError(item.code, kind.value, item.kind)


def _resolve_usable_recipe(finished_good: Item, session: Session) -> Recipe:
    recipe = recipe_service.resolve_recipe(finished_good.id, session=session)
    if recipe is None:
        raise NoRecipeError(finished_good.code)
    return recipe


def _component_requirements(
    recipe: Recipe, quantity: Decimal
) -> List[Tuple[RecipeLine, Decimal]]:
    """Per-component requirement for a production quantity, rounded to ledger precision."""
    requirements = []
    for line, required in recipe.requirements_for(quantity):
        if required > MAX_QUANTITY:
            raise InvalidQuantityError(
                "quantity",
                quantity,
                f"Would consume more than {MAX_QUANTITY} of {line.raw_material_code}",
            )
        required = quantize_quantity(required)
        if required <= 0:
            raise InvalidQuantityError(
                "quantity",
                quantity,
                f"Too small to consume any {line.raw_material_code}",
            )
        requirements.append((line, required))
    return requirements


def _find_shortfalls(
    requirements: List[Tuple[RecipeLine, Decimal]], components: Dict[int, Item]
) -> List[Shortfall]:
    """Every component whose stock is below its requirement (all of them, not the first)."""
    shortfalls = []
    for line, required in requirements:
        item = components.get(line.raw_material_id)
        available = item.current_stock if item is not None else Decimal("0")
        if available < required:
            shortfalls.append(
                Shortfall(
                    item_id=line.raw_material_id,
                    item_code=item.code if item is not None else line.raw_material_code,
                    required=required,
                    available=available,
                )
            )
    return shortfalls


def _append_movement(
    session: Session,
    item: Item,
    kind: MovementKind,
    delta: Decimal,
    user_id: str,
    note: Optional[str],
    production: Optional[Movement] = None,
) -> Movement:
    """Write one ledger row and move the item's stock to its stock_after."""
    stock_before = item.current_stock
    stock_after = stock_before + delta
    if abs(stock_after) > MAX_QUANTITY:
        raise InvalidQuantityError(
            "quantity",
            abs(delta),
            f"Stock of {item.code} would exceed {MAX_QUANTITY}",
        )

    movement = Movement(
        item=item,
        kind=kind.value,
        quantity=delta,
        user_id=user_id,
        note=note,
        stock_before=stock_before,
        stock_after=stock_after,
        production_movement=production,
    )
    item.current_stock = stock_after
    session.add(movement)
    return movement
