"""
Ledger models for stock movements.

This module contains:
- Movement: One immutable stock-affecting event against one item
- MovementComponent: Consumed-component audit line attached to a production row

Both tables are append-only. Mapper events reject any flush that would
update or delete an existing row.
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    ForeignKey,
    Index,
    Numeric,
    CheckConstraint,
    event,
)
from sqlalchemy.orm import object_session, relationship

from .base import BaseModel
from .enums import MovementKind, MOVEMENT_KIND_VALUES
from stockledger.services.exceptions import LedgerImmutableError
from stockledger.utils.constants import (
    MAX_CODE_LENGTH,
    MAX_USER_ID_LENGTH,
    QUANTITY_DECIMAL_PLACES,
    QUANTITY_PRECISION,
)


class Movement(BaseModel):
    """
    Movement model: one row of the stock ledger.

    stock_after = stock_before + quantity, and stock_before is the item's
    current_stock at the instant the movement was posted. The equality is
    enforced by the posting engine rather than a CHECK constraint because
    SQLite evaluates Numeric arithmetic in floating point.

    Attributes:
        item_id: Item whose stock changed
        kind: MovementKind value
        quantity: Signed delta applied to the item's stock (never zero)
        user_id: Acting user identifier (opaque)
        note: Optional free text
        stock_before: Item stock before the movement
        stock_after: Item stock after the movement
        production_movement_id: For consumption rows, the production row they belong to
    """

    __tablename__ = "movements"

    item_id = Column(
        Integer, ForeignKey("items.id", ondelete="RESTRICT"), nullable=False
    )
    kind = Column(String(40), nullable=False)
    quantity = Column(Numeric(QUANTITY_PRECISION, QUANTITY_DECIMAL_PLACES), nullable=False)
    user_id = Column(String(MAX_USER_ID_LENGTH), nullable=False)
    note = Column(Text, nullable=True)

    stock_before = Column(Numeric(QUANTITY_PRECISION, QUANTITY_DECIMAL_PLACES), nullable=False)
    stock_after = Column(Numeric(QUANTITY_PRECISION, QUANTITY_DECIMAL_PLACES), nullable=False)

    production_movement_id = Column(
        Integer,
        ForeignKey("movements.id"),
        nullable=True,
    )

    # Relationships
    item = relationship("Item", lazy="joined")
    production_movement = relationship(
        "Movement",
        remote_side="Movement.id",
        back_populates="consumption_movements",
    )
    consumption_movements = relationship(
        "Movement",
        back_populates="production_movement",
        order_by="Movement.id",
    )
    components = relationship(
        "MovementComponent",
        back_populates="movement",
        order_by="MovementComponent.component_code",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_movement_item_created", "item_id", "created_at"),
        Index("idx_movement_kind", "kind"),
        Index("idx_movement_production", "production_movement_id"),
        CheckConstraint(
            "kind IN ({})".format(", ".join(f"'{k}'" for k in MOVEMENT_KIND_VALUES)),
            name="ck_movement_kind_valid",
        ),
        CheckConstraint("quantity != 0", name="ck_movement_quantity_non_zero"),
    )

    @property
    def movement_kind(self) -> MovementKind:
        return MovementKind(self.kind)

    def __repr__(self) -> str:
        return (
            f"Movement(id={self.id}, item_id={self.item_id}, kind='{self.kind}', "
            f"quantity={self.quantity}, stock_after={self.stock_after})"
        )

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert movement to dictionary.

        Args:
            include_relationships: If True, include the item and component lines

        Returns:
            Dictionary representation; item_code is always included
        """
        result = super().to_dict(include_relationships=False)
        result["item_code"] = self.item.code if self.item else None
        if include_relationships:
            result["item"] = self.item.to_dict() if self.item else None
            result["components"] = [c.to_dict() for c in self.components]
        return result


class MovementComponent(BaseModel):
    """
    Consumed-component audit line of a production movement.

    component_code is a point-in-time snapshot and component_item_id is not a
    foreign key, so the audit trail survives later renames.

    Attributes:
        movement_id: Production movement this line belongs to
        component_item_id: Raw material that was consumed
        component_code: Raw material code at posting time
        quantity_consumed: Amount consumed (> 0)
    """

    __tablename__ = "movement_components"

    movement_id = Column(
        Integer,
        ForeignKey("movements.id", ondelete="RESTRICT"),
        nullable=False,
    )
    component_item_id = Column(Integer, nullable=False)
    component_code = Column(String(MAX_CODE_LENGTH), nullable=False)
    quantity_consumed = Column(
        Numeric(QUANTITY_PRECISION, QUANTITY_DECIMAL_PLACES), nullable=False
    )

    movement = relationship("Movement", back_populates="components")

    __table_args__ = (
        Index("idx_movement_component_movement", "movement_id"),
        CheckConstraint(
            "quantity_consumed > 0", name="ck_movement_component_quantity_positive"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"MovementComponent(id={self.id}, movement_id={self.movement_id}, "
            f"component_code='{self.component_code}', quantity={self.quantity_consumed})"
        )


@event.listens_for(Movement, "before_update")
@event.listens_for(MovementComponent, "before_update")
def _reject_ledger_update(mapper, connection, target):
    # Dirty collections alone do not produce an UPDATE
    session = object_session(target)
    if session is not None and not session.is_modified(target, include_collections=False):
        return
    raise LedgerImmutableError(repr(target), "update")


@event.listens_for(Movement, "before_delete")
@event.listens_for(MovementComponent, "before_delete")
def _reject_ledger_delete(mapper, connection, target):
    raise LedgerImmutableError(repr(target), "delete")
