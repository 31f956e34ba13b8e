"""
Enumerations for items and ledger movements.

- ItemKind: Raw material vs. finished good
- MovementKind: Stored kind of a ledger row
"""

from enum import Enum


class ItemKind(str, Enum):
    """
    Kind of stock-keeping unit.

    Values:
        RAW_MATERIAL: Input consumed when producing finished goods
        FINISHED_GOOD: Sellable item produced from a recipe
    """

    RAW_MATERIAL = "raw_material"
    FINISHED_GOOD = "finished_good"


class MovementKind(str, Enum):
    """
    Stored kind of a ledger movement.

    A production request writes one PRODUCTION row for the finished good
    and one CONSUMPTION row per recipe component.

    Values:
        INTAKE: Raw material received (positive delta)
        WITHDRAWAL: Finished good shipped or removed (negative delta)
        ADJUSTMENT: Manual correction to an absolute stock level (either sign)
        PRODUCTION: Finished good produced (positive delta)
        CONSUMPTION: Raw material consumed by a production (negative delta)
    """

    INTAKE = "intake_raw_material"
    WITHDRAWAL = "withdrawal_finished_good"
    ADJUSTMENT = "adjustment"
    PRODUCTION = "production"
    CONSUMPTION = "consumption_for_production"


ITEM_KIND_VALUES = tuple(kind.value for kind in ItemKind)
MOVEMENT_KIND_VALUES = tuple(kind.value for kind in MovementKind)
