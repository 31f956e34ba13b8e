"""
Item model for stock-keeping units.

An Item is either a raw material or a finished good. Its current_stock is
owned by the posting engine: it only changes together with a ledger row.
"""

from decimal import Decimal

from sqlalchemy import (
    Column,
    String,
    Numeric,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import ItemKind, ITEM_KIND_VALUES
from stockledger.utils.constants import (
    MAX_CODE_LENGTH,
    MAX_DESCRIPTION_LENGTH,
    MAX_UNIT_LENGTH,
    QUANTITY_DECIMAL_PLACES,
    QUANTITY_PRECISION,
)


class Item(BaseModel):
    """
    Item model representing a stock-keeping unit.

    Attributes:
        code: Unique human-readable code (e.g. "MP-001")
        description: Display description
        kind: "raw_material" or "finished_good"
        unit_of_measure: Unit the stock is counted in (e.g. "kg", "unit")
        minimum_stock: Low-stock threshold (>= 0)
        current_stock: Quantity on hand; equals the sum of the item's ledger deltas
        unit_value: Optional monetary value per unit
    """

    __tablename__ = "items"

    code = Column(String(MAX_CODE_LENGTH), nullable=False, unique=True)
    description = Column(String(MAX_DESCRIPTION_LENGTH), nullable=False)
    kind = Column(String(20), nullable=False)
    unit_of_measure = Column(String(MAX_UNIT_LENGTH), nullable=False)

    minimum_stock = Column(
        Numeric(QUANTITY_PRECISION, QUANTITY_DECIMAL_PLACES),
        nullable=False,
        default=Decimal("0"),
    )
    current_stock = Column(
        Numeric(QUANTITY_PRECISION, QUANTITY_DECIMAL_PLACES),
        nullable=False,
        default=Decimal("0"),
    )
    unit_value = Column(Numeric(12, 4), nullable=True)

    # Components of this item's recipe (finished goods only)
    recipe_components = relationship(
        "RecipeComponent",
        foreign_keys="RecipeComponent.finished_good_id",
        back_populates="finished_good",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_item_kind", "kind"),
        Index("idx_item_description", "description"),
        CheckConstraint(
            "kind IN ({})".format(", ".join(f"'{k}'" for k in ITEM_KIND_VALUES)),
            name="ck_item_kind_valid",
        ),
        CheckConstraint("minimum_stock >= 0", name="ck_item_minimum_stock_non_negative"),
    )

    @property
    def item_kind(self) -> ItemKind:
        """Kind as an ItemKind enum."""
        return ItemKind(self.kind)

    @property
    def is_raw_material(self) -> bool:
        return self.kind == ItemKind.RAW_MATERIAL.value

    @property
    def is_finished_good(self) -> bool:
        return self.kind == ItemKind.FINISHED_GOOD.value

    @property
    def is_low_stock(self) -> bool:
        """True when stock on hand is below the minimum threshold."""
        return (self.current_stock or Decimal("0")) < (self.minimum_stock or Decimal("0"))

    def __repr__(self) -> str:
        return (
            f"Item(id={self.id}, code='{self.code}', kind='{self.kind}', "
            f"current_stock={self.current_stock})"
        )

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert item to dictionary.

        Args:
            include_relationships: If True, include recipe components

        Returns:
            Dictionary representation with the low-stock flag added
        """
        result = super().to_dict(include_relationships)
        result["is_low_stock"] = self.is_low_stock
        return result
