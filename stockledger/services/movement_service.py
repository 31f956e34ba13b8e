"""
Movement Service - read access to the stock ledger and reconciliation.

The ledger is append-only: this module never writes movements. Posting
lives in stock_posting_service.

Functions:
- list_movements(): newest-first ledger page, optionally filtered
- get_movement(): one ledger row by id
- replay_item_stock(): recompute an item's stock from its ledger rows
- reconcile_stock(): compare every item's stock with its replayed ledger
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from stockledger.models import Item, Movement, MovementKind
from stockledger.services.database import session_scope
from stockledger.services.exceptions import (
    ItemNotFoundError,
    MovementNotFoundError,
    ValidationError,
)
from stockledger.services.logging_utils import get_service_logger, log_operation
from stockledger.utils.constants import MOVEMENT_HISTORY_LIMIT

logger = get_service_logger(__name__)


def list_movements(
    item_id: Optional[int] = None,
    kind: Optional[str] = None,
    limit: Optional[int] = MOVEMENT_HISTORY_LIMIT,
    *,
    session: Optional[Session] = None,
) -> List[Movement]:
    """
    List ledger rows, newest first.

    Args:
        item_id: Only rows for this item
        kind: Only rows of this MovementKind
        limit: Maximum rows returned (None for no limit)
        session: Optional database session

    Returns:
        Movements ordered by created_at then id, descending
    """
    if session is not None:
        return _list_movements_impl(item_id, kind, limit, session)
    with session_scope() as session:
        return _list_movements_impl(item_id, kind, limit, session)


def _list_movements_impl(item_id, kind, limit, session: Session) -> List[Movement]:
    query = session.query(Movement)
    if item_id is not None:
        query = query.filter(Movement.item_id == item_id)
    if kind is not None:
        try:
            kind = MovementKind(kind).value
        except ValueError:
            valid = ", ".join(k.value for k in MovementKind)
            raise ValidationError(f"kind: Must be one of: {valid} (got {kind!r})")
        query = query.filter(Movement.kind == kind)
    query = query.order_by(Movement.created_at.desc(), Movement.id.desc())
    if limit is not None:
        if limit <= 0:
            raise ValidationError("limit: Must be a positive number")
        query = query.limit(limit)
    return query.all()


def get_movement(movement_id: int, *, session: Optional[Session] = None) -> Movement:
    """
    Get one ledger row.

    Raises:
        MovementNotFoundError: If no movement has this id
    """
    if session is not None:
        return _get_movement_impl(movement_id, session)
    with session_scope() as session:
        return _get_movement_impl(movement_id, session)


def _get_movement_impl(movement_id: int, session: Session) -> Movement:
    movement = session.get(Movement, movement_id)
    if movement is None:
        raise MovementNotFoundError(movement_id)
    return movement


def replay_item_stock(item_id: int, *, session: Optional[Session] = None) -> Decimal:
    """
    Recompute an item's stock by summing its ledger deltas in posting order.

    Raises:
        ItemNotFoundError: If the item doesn't exist
    """
    if session is not None:
        return _replay_item_stock_impl(item_id, session)
    with session_scope() as session:
        return _replay_item_stock_impl(item_id, session)


def _replay_item_stock_impl(item_id: int, session: Session) -> Decimal:
    if session.get(Item, item_id) is None:
        raise ItemNotFoundError(item_id)

    deltas = (
        session.query(Movement.quantity)
        .filter(Movement.item_id == item_id)
        .order_by(Movement.created_at.asc(), Movement.id.asc())
        .all()
    )
    stock = Decimal("0")
    for (delta,) in deltas:
        stock += delta
    return stock


def reconcile_stock(*, session: Optional[Session] = None) -> List[Dict]:
    """
    Compare every item's current_stock with its replayed ledger.

    Returns:
        One dict per inconsistent item with keys item_id, item_code,
        current_stock, ledger_stock and difference (current minus ledger).
        An empty list means the item store and the ledger agree.
    """
    if session is not None:
        return _reconcile_stock_impl(session)
    with session_scope() as session:
        return _reconcile_stock_impl(session)


def _reconcile_stock_impl(session: Session) -> List[Dict]:
    ledger_totals = dict(
        session.query(Movement.item_id, func.count(Movement.id))
        .group_by(Movement.item_id)
        .all()
    )

    discrepancies = []
    for item in session.query(Item).order_by(Item.code).all():
        # Summed in Python; SQLite would sum Numeric columns as floats
        ledger_stock = (
            _replay_item_stock_impl(item.id, session)
            if ledger_totals.get(item.id)
            else Decimal("0")
        )
        if item.current_stock != ledger_stock:
            discrepancy = {
                "item_id": item.id,
                "item_code": item.code,
                "current_stock": item.current_stock,
                "ledger_stock": ledger_stock,
                "difference": item.current_stock - ledger_stock,
            }
            discrepancies.append(discrepancy)
            log_operation(
                logger,
                operation="reconcile_stock",
                outcome="discrepancy",
                level=logging.WARNING,
                **discrepancy,
            )

    log_operation(
        logger,
        operation="reconcile_stock",
        outcome="consistent" if not discrepancies else "inconsistent",
        items_checked=session.query(func.count(Item.id)).scalar(),
        discrepancies=len(discrepancies),
    )
    return discrepancies
