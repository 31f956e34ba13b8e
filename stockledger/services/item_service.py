"""Item Service - catalog operations for stock-keeping units.

This module provides business logic for the Item Store: create, read,
update and delete items, plus the low-stock and summary queries the
dashboard reads.

Stock on hand is never written here. Items are created with zero stock and
current_stock only changes through stock_posting_service, which writes the
matching ledger row.

All functions follow the session pattern: pass ``session`` to compose with
a caller's transaction, or omit it to run in a new session_scope().

Example Usage:
    >>> from stockledger.services.item_service import create_item, get_low_stock_items
    >>>
    >>> flour = create_item("MP-001", "Flour", "raw_material", "kg", minimum_stock=10)
    >>> flour.current_stock
    Decimal('0')
    >>> [i.code for i in get_low_stock_items()]
    ['MP-001']
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from stockledger.models import Item, ItemKind, Movement
from stockledger.services.database import session_scope
from stockledger.services.exceptions import (
    ItemCodeExistsError,
    ItemInUseError,
    ItemNotFoundError,
    ValidationError,
)
from stockledger.services.logging_utils import get_service_logger, log_operation
from stockledger.utils.constants import (
    ERROR_REQUIRED_FIELD,
    ERROR_TOO_LONG,
    MAX_DESCRIPTION_LENGTH,
    MAX_UNIT_LENGTH,
)
from stockledger.utils.validators import parse_non_negative_quantity, validate_code

logger = get_service_logger(__name__)

# Fields an administrative edit may change; kind and current_stock are excluded
UPDATABLE_FIELDS = ("code", "description", "unit_of_measure", "minimum_stock", "unit_value")


def _validate_kind(kind) -> str:
    try:
        return ItemKind(kind).value
    except ValueError:
        valid = ", ".join(k.value for k in ItemKind)
        raise ValidationError(f"kind: Must be one of: {valid} (got {kind!r})")


def _validate_text(value: Optional[str], field_name: str, max_length: int) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name}: {ERROR_REQUIRED_FIELD}")
    value = str(value).strip()
    if len(value) > max_length:
        raise ValidationError(f"{field_name}: {ERROR_TOO_LONG.format(max_length=max_length)}")
    return value


def _validate_unit_value(value) -> Optional[Decimal]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_non_negative_quantity(value, "unit_value")


def _ensure_code_available(session: Session, code: str, exclude_id: Optional[int] = None):
    query = session.query(Item.id).filter(Item.code == code)
    if exclude_id is not None:
        query = query.filter(Item.id != exclude_id)
    if query.first() is not None:
        raise ItemCodeExistsError(code)


def create_item(
    code: str,
    description: str,
    kind: str,
    unit_of_measure: str,
    minimum_stock: Any = 0,
    unit_value: Any = None,
    *,
    session: Optional[Session] = None,
) -> Item:
    """Create a new item with zero stock.

    Args:
        code: Unique item code (required)
        description: Display description (required)
        kind: "raw_material" or "finished_good" (ItemKind accepted)
        unit_of_measure: Unit the stock is counted in (required)
        minimum_stock: Low-stock threshold (>= 0)
        unit_value: Optional monetary value per unit (>= 0)
        session: Optional database session for transactional atomicity

    Returns:
        Item: The created item

    Raises:
        ValidationError: If a field is missing or out of range
        ItemCodeExistsError: If the code is already used
    """
    if session is not None:
        return _create_item_impl(
            code, description, kind, unit_of_measure, minimum_stock, unit_value, session
        )
    with session_scope() as session:
        return _create_item_impl(
            code, description, kind, unit_of_measure, minimum_stock, unit_value, session
        )


def _create_item_impl(
    code: str,
    description: str,
    kind: str,
    unit_of_measure: str,
    minimum_stock: Any,
    unit_value: Any,
    session: Session,
) -> Item:
    """Implementation of create_item."""
    code = validate_code(code)
    item = Item(
        code=code,
        description=_validate_text(description, "description", MAX_DESCRIPTION_LENGTH),
        kind=_validate_kind(kind),
        unit_of_measure=_validate_text(unit_of_measure, "unit_of_measure", MAX_UNIT_LENGTH),
        minimum_stock=parse_non_negative_quantity(minimum_stock, "minimum_stock"),
        unit_value=_validate_unit_value(unit_value),
        current_stock=Decimal("0"),
    )
    _ensure_code_available(session, code)

    session.add(item)
    session.flush()

    log_operation(logger, operation="create_item", outcome="success", item_id=item.id, code=code)
    return item


def get_item(item_id: int, *, session: Optional[Session] = None) -> Optional[Item]:
    """Get item by ID.

    Returns:
        Item, or None if not found
    """
    if session is not None:
        return session.get(Item, item_id)
    with session_scope() as session:
        return session.get(Item, item_id)


def get_item_by_code(code: str, *, session: Optional[Session] = None) -> Optional[Item]:
    """Get item by its unique code.

    Returns:
        Item, or None if not found
    """
    if session is not None:
        return session.query(Item).filter(Item.code == code).first()
    with session_scope() as session:
        return session.query(Item).filter(Item.code == code).first()


def list_items(
    kind: Optional[str] = None, *, session: Optional[Session] = None
) -> List[Item]:
    """List items ordered by description.

    Args:
        kind: Optional ItemKind filter
        session: Optional database session

    Returns:
        List of items
    """
    if session is not None:
        return _list_items_impl(kind, session)
    with session_scope() as session:
        return _list_items_impl(kind, session)


def _list_items_impl(kind: Optional[str], session: Session) -> List[Item]:
    query = session.query(Item)
    if kind is not None:
        query = query.filter(Item.kind == _validate_kind(kind))
    return query.order_by(Item.description.asc(), Item.id.asc()).all()


def update_item(
    item_id: int, data: Dict[str, Any], *, session: Optional[Session] = None
) -> Item:
    """Update descriptive fields of an item.

    Only code, description, unit_of_measure, minimum_stock and unit_value can
    be changed. Stock changes go through the posting engine; kind is fixed
    once the item exists.

    Args:
        item_id: ID of item to update
        data: Mapping of field name to new value
        session: Optional database session

    Returns:
        Item: The updated item

    Raises:
        ItemNotFoundError: If the item doesn't exist
        ValidationError: If a field is not updatable or invalid
        ItemCodeExistsError: If the new code belongs to another item
    """
    if session is not None:
        return _update_item_impl(item_id, data, session)
    with session_scope() as session:
        return _update_item_impl(item_id, data, session)


def _update_item_impl(item_id: int, data: Dict[str, Any], session: Session) -> Item:
    """Implementation of update_item."""
    rejected = sorted(key for key in data if key not in UPDATABLE_FIELDS)
    if rejected:
        raise ValidationError(
            [f"{key}: Cannot be changed through an item update" for key in rejected]
        )

    item = session.get(Item, item_id)
    if item is None:
        raise ItemNotFoundError(item_id)

    if "code" in data:
        code = validate_code(data["code"])
        _ensure_code_available(session, code, exclude_id=item_id)
        item.code = code
    if "description" in data:
        item.description = _validate_text(data["description"], "description", MAX_DESCRIPTION_LENGTH)
    if "unit_of_measure" in data:
        item.unit_of_measure = _validate_text(
            data["unit_of_measure"], "unit_of_measure", MAX_UNIT_LENGTH
        )
    if "minimum_stock" in data:
        item.minimum_stock = parse_non_negative_quantity(data["minimum_stock"], "minimum_stock")
    if "unit_value" in data:
        item.unit_value = _validate_unit_value(data["unit_value"])

    session.flush()
    log_operation(
        logger, operation="update_item", outcome="success", item_id=item_id, fields=sorted(data)
    )
    return item


def delete_item(item_id: int, *, session: Optional[Session] = None) -> bool:
    """Delete an item that has no ledger history.

    Deleting a finished good also deletes its recipe. Recipe lines that use
    a deleted raw material keep a null reference and are ignored when the
    recipe is resolved.

    Returns:
        True if deleted

    Raises:
        ItemNotFoundError: If the item doesn't exist
        ItemInUseError: If movements reference the item
    """
    if session is not None:
        return _delete_item_impl(item_id, session)
    with session_scope() as session:
        return _delete_item_impl(item_id, session)


def _delete_item_impl(item_id: int, session: Session) -> bool:
    """Implementation of delete_item."""
    item = session.get(Item, item_id)
    if item is None:
        raise ItemNotFoundError(item_id)

    movement_count = (
        session.query(func.count(Movement.id)).filter(Movement.item_id == item_id).scalar()
    )
    if movement_count:
        raise ItemInUseError(item.code, movement_count)

    session.delete(item)
    session.flush()
    log_operation(logger, operation="delete_item", outcome="success", item_id=item_id)
    return True


def get_low_stock_items(*, session: Optional[Session] = None) -> List[Item]:
    """Items whose stock is below their minimum, lowest stock first."""
    if session is not None:
        return _get_low_stock_items_impl(session)
    with session_scope() as session:
        return _get_low_stock_items_impl(session)


def _get_low_stock_items_impl(session: Session) -> List[Item]:
    return (
        session.query(Item)
        .filter(Item.current_stock < Item.minimum_stock)
        .order_by(Item.current_stock.asc(), Item.code.asc())
        .all()
    )


def get_inventory_summary(*, session: Optional[Session] = None) -> Dict[str, int]:
    """Counts shown on the dashboard.

    Returns:
        Dict with keys total_items, raw_materials, finished_goods, low_stock
    """
    if session is not None:
        return _get_inventory_summary_impl(session)
    with session_scope() as session:
        return _get_inventory_summary_impl(session)


def _get_inventory_summary_impl(session: Session) -> Dict[str, int]:
    counts = dict(session.query(Item.kind, func.count(Item.id)).group_by(Item.kind).all())
    low_stock = (
        session.query(func.count(Item.id))
        .filter(Item.current_stock < Item.minimum_stock)
        .scalar()
    )
    raw_materials = counts.get(ItemKind.RAW_MATERIAL.value, 0)
    finished_goods = counts.get(ItemKind.FINISHED_GOOD.value, 0)
    return {
        "total_items": raw_materials + finished_goods,
        "raw_materials": raw_materials,
        "finished_goods": finished_goods,
        "low_stock": low_stock or 0,
    }
