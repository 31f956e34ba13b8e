"""
Recipe (bill-of-materials) model.

A recipe is identified by its finished good: the set of RecipeComponent
rows sharing a finished_good_id. There is no separate recipe header table
and no versioning; a recipe is replaced wholesale.
"""

from sqlalchemy import (
    Column,
    Integer,
    ForeignKey,
    Index,
    Numeric,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from stockledger.utils.constants import QUANTITY_DECIMAL_PLACES, QUANTITY_PRECISION


class RecipeComponent(BaseModel):
    """
    One raw-material line of a finished good's recipe.

    raw_material_id is nullable: deleting a raw material leaves the line in
    place with a null reference, and the recipe resolver ignores such lines.

    Attributes:
        finished_good_id: Finished good the recipe produces
        raw_material_id: Raw material consumed (None once that item is deleted)
        quantity_required: Amount of raw material per one unit of finished good (> 0)
    """

    __tablename__ = "recipe_components"

    finished_good_id = Column(
        Integer, ForeignKey("items.id", ondelete="CASCADE"), nullable=False
    )
    raw_material_id = Column(
        Integer, ForeignKey("items.id", ondelete="SET NULL"), nullable=True
    )
    quantity_required = Column(
        Numeric(QUANTITY_PRECISION, QUANTITY_DECIMAL_PLACES), nullable=False
    )

    # Relationships
    finished_good = relationship(
        "Item",
        foreign_keys=[finished_good_id],
        back_populates="recipe_components",
    )
    raw_material = relationship("Item", foreign_keys=[raw_material_id], lazy="joined")

    __table_args__ = (
        Index("idx_recipe_component_finished_good", "finished_good_id"),
        Index("idx_recipe_component_raw_material", "raw_material_id"),
        UniqueConstraint(
            "finished_good_id", "raw_material_id", name="uq_recipe_component_material"
        ),
        CheckConstraint(
            "quantity_required > 0", name="ck_recipe_component_quantity_positive"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"RecipeComponent(id={self.id}, finished_good_id={self.finished_good_id}, "
            f"raw_material_id={self.raw_material_id}, quantity={self.quantity_required})"
        )
