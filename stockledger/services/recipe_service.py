"""
Recipe Service - bill-of-materials resolution and replacement.

This module provides:
- resolve_recipe(): load a finished good's normalized component list
- has_usable_recipe(): whether production can be posted for a finished good
- upsert_recipe(): replace a recipe wholesale, atomically
- delete_recipe() / list_recipes()

Normalization rules applied by resolve_recipe():
- components whose raw-material reference is null are dropped
- components with a non-positive quantity are dropped
- duplicate raw materials are merged by summing their quantities
- components are ordered by raw-material code

A recipe with no components left after normalization resolves to None,
which the posting engine treats exactly like a missing recipe.

Replacement is delete-then-insert inside a single transaction: every input
is validated before the delete, and any later failure rolls the delete
back, so the previous recipe is never left half-replaced.
"""

from collections import OrderedDict
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stockledger.models import Item, ItemKind, RecipeComponent
from stockledger.services.database import session_scope
from stockledger.services.dto import ComponentInput, Recipe, RecipeLine
from stockledger.services.exceptions import (
    ItemNotFoundError,
    PersistenceError,
    ValidationError,
    WrongItemKindError,
)
from stockledger.services.logging_utils import get_service_logger, log_operation
from stockledger.utils.validators import parse_positive_quantity

logger = get_service_logger(__name__)


# =============================================================================
# Resolution
# =============================================================================


def resolve_recipe(
    finished_good_id: int, *, session: Optional[Session] = None
) -> Optional[Recipe]:
    """
    Load the normalized recipe of a finished good.

    Args:
        finished_good_id: Item ID of the finished good
        session: Optional database session (uses session_scope if not provided)

    Returns:
        Recipe with at least one component, or None if the item doesn't exist,
        has no component rows, or none of its rows survive normalization
    """
    if session is not None:
        return _resolve_recipe_impl(finished_good_id, session)
    with session_scope() as session:
        return _resolve_recipe_impl(finished_good_id, session)


def _resolve_recipe_impl(finished_good_id: int, session: Session) -> Optional[Recipe]:
    """Implementation of resolve_recipe that uses provided session."""
    finished_good = session.get(Item, finished_good_id)
    if finished_good is None:
        return None

    rows = (
        session.query(RecipeComponent)
        .filter(RecipeComponent.finished_good_id == finished_good_id)
        .order_by(RecipeComponent.id)
        .all()
    )
    return _build_recipe(finished_good, rows)


def _build_recipe(finished_good: Item, rows: Iterable[RecipeComponent]) -> Optional[Recipe]:
    """Normalize raw component rows into a Recipe (or None)."""
    merged: "OrderedDict[int, list]" = OrderedDict()
    for row in rows:
        if row.raw_material_id is None or row.raw_material is None:
            continue
        quantity = row.quantity_required
        if quantity is None or quantity <= 0:
            continue
        if row.raw_material_id in merged:
            merged[row.raw_material_id][1] += quantity
        else:
            merged[row.raw_material_id] = [row.raw_material.code, quantity]

    if not merged:
        return None

    lines = [
        RecipeLine(raw_material_id=raw_id, raw_material_code=code, quantity_required=quantity)
        for raw_id, (code, quantity) in merged.items()
    ]
    lines.sort(key=lambda line: line.raw_material_code)
    return Recipe(
        finished_good_id=finished_good.id,
        finished_good_code=finished_good.code,
        components=lines,
    )


def has_usable_recipe(finished_good_id: int, *, session: Optional[Session] = None) -> bool:
    """Return True if production can be posted against this finished good's recipe."""
    return resolve_recipe(finished_good_id, session=session) is not None


def list_recipes(*, session: Optional[Session] = None) -> List[Recipe]:
    """
    List every usable recipe, ordered by finished-good code.

    Returns:
        One normalized Recipe per finished good that has one
    """
    if session is not None:
        return _list_recipes_impl(session)
    with session_scope() as session:
        return _list_recipes_impl(session)


def _list_recipes_impl(session: Session) -> List[Recipe]:
    rows = session.query(RecipeComponent).order_by(RecipeComponent.id).all()

    by_finished_good: Dict[int, List[RecipeComponent]] = {}
    for row in rows:
        by_finished_good.setdefault(row.finished_good_id, []).append(row)

    recipes = []
    for finished_good_id, components in by_finished_good.items():
        recipe = _build_recipe(session.get(Item, finished_good_id), components)
        if recipe is not None:
            recipes.append(recipe)
    recipes.sort(key=lambda r: r.finished_good_code)
    return recipes


# =============================================================================
# Replacement
# =============================================================================


def upsert_recipe(
    finished_good_id: int,
    components: Iterable,
    *,
    session: Optional[Session] = None,
) -> Optional[Recipe]:
    """
    Replace a finished good's recipe with the given components.

    Transaction boundary: Multi-step operation (atomic).
    Steps executed atomically:
        1. Validate the finished good and every component
        2. Delete all existing component rows
        3. Insert the new component rows
        4. Flush and re-resolve

    An empty component list deletes the recipe.

    Args:
        finished_good_id: Item ID of the finished good
        components: ComponentInput objects or dicts with raw_material_id and
            quantity_required
        session: Optional database session; when given, the caller owns the
            commit and must roll back on error

    Returns:
        The stored Recipe, or None when the recipe was deleted

    Raises:
        ItemNotFoundError: If the finished good or a raw material doesn't exist
        WrongItemKindError: If the target is not a finished good or a component
            is not a raw material
        ValidationError: Duplicate raw materials, self-reference or bad quantity
        PersistenceError: If the store rejects the write (prior recipe kept)
    """
    try:
        if session is not None:
            return _upsert_recipe_impl(finished_good_id, components, session)
        with session_scope() as session:
            return _upsert_recipe_impl(finished_good_id, components, session)
    except SQLAlchemyError as e:
        log_operation(
            logger,
            operation="upsert_recipe",
            outcome="persistence_error",
            finished_good_id=finished_good_id,
            error=str(e),
        )
        raise PersistenceError(str(e), original_error=e) from e


def _upsert_recipe_impl(finished_good_id: int, components: Iterable, session: Session):
    """Implementation of upsert_recipe that uses provided session."""
    finished_good = _get_finished_good(finished_good_id, session)
    lines = _validate_components(finished_good, list(components), session)

    removed = (
        session.query(RecipeComponent)
        .filter(RecipeComponent.finished_good_id == finished_good_id)
        .delete(synchronize_session="fetch")
    )
    for raw_material_id, quantity in lines:
        session.add(
            RecipeComponent(
                finished_good_id=finished_good_id,
                raw_material_id=raw_material_id,
                quantity_required=quantity,
            )
        )
    session.flush()

    log_operation(
        logger,
        operation="upsert_recipe",
        outcome="success" if lines else "deleted",
        finished_good_id=finished_good_id,
        removed=removed,
        inserted=len(lines),
    )
    return _resolve_recipe_impl(finished_good_id, session)


def _get_finished_good(finished_good_id: int, session: Session) -> Item:
    # Same row lock a production takes before it resolves the recipe
    finished_good = (
        session.query(Item)
        .filter(Item.id == finished_good_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if finished_good is None:
        raise ItemNotFoundError(finished_good_id)
    if not finished_good.is_finished_good:
        raise WrongItemKindError(
            finished_good.code, ItemKind.FINISHED_GOOD.value, finished_good.kind
        )
    return finished_good


def _coerce_component(component) -> ComponentInput:
    if isinstance(component, ComponentInput):
        return component
    if isinstance(component, dict):
        try:
            return ComponentInput(
                raw_material_id=component["raw_material_id"],
                quantity_required=component["quantity_required"],
            )
        except KeyError as e:
            raise ValidationError(f"component: missing field {e.args[0]}")
    raise ValidationError(f"component: unsupported value {component!r}")


def _validate_components(finished_good: Item, components: list, session: Session) -> list:
    """
    Check every component before anything is written.

    Returns:
        List of (raw_material_id, quantity) tuples in input order
    """
    lines = []
    seen = set()
    errors = []
    for component in components:
        component = _coerce_component(component)
        raw_material_id = component.raw_material_id

        if raw_material_id == finished_good.id:
            errors.append(f"Finished good '{finished_good.code}' cannot be its own component")
            continue
        if raw_material_id in seen:
            errors.append(f"Raw material {raw_material_id} appears more than once")
            continue
        seen.add(raw_material_id)

        raw_material = session.get(Item, raw_material_id) if raw_material_id is not None else None
        if raw_material is None:
            raise ItemNotFoundError(raw_material_id)
        if not raw_material.is_raw_material:
            raise WrongItemKindError(
                raw_material.code, ItemKind.RAW_MATERIAL.value, raw_material.kind
            )

        quantity = parse_positive_quantity(
            component.quantity_required, f"quantity_required[{raw_material.code}]"
        )
        lines.append((raw_material_id, quantity))

    if errors:
        raise ValidationError(errors)
    return lines


def delete_recipe(finished_good_id: int, *, session: Optional[Session] = None) -> bool:
    """
    Delete a finished good's recipe.

    Returns:
        True if any component rows were deleted, False if there was no recipe
    """
    if session is not None:
        return _delete_recipe_impl(finished_good_id, session)
    with session_scope() as session:
        return _delete_recipe_impl(finished_good_id, session)


def _delete_recipe_impl(finished_good_id: int, session: Session) -> bool:
    removed = (
        session.query(RecipeComponent)
        .filter(RecipeComponent.finished_good_id == finished_good_id)
        .delete(synchronize_session="fetch")
    )
    session.flush()
    log_operation(
        logger,
        operation="delete_recipe",
        outcome="deleted" if removed else "not_found",
        finished_good_id=finished_good_id,
    )
    return removed > 0

