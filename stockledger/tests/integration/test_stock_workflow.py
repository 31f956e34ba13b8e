"""Integration tests for a complete inventory workflow.

Catalog setup, recipe definition, intake, production, withdrawal, stock
count and reconciliation, checked against the ledger at every step.
"""

from decimal import Decimal

from stockledger.models import MovementKind
from stockledger.services import item_service, movement_service, recipe_service
from stockledger.services.dto import (
    Adjustment,
    ComponentInput,
    IntakeRawMaterial,
    ProduceFinishedGood,
    WithdrawFinishedGood,
)
from stockledger.services.exceptions import InsufficientStockError, NoRecipeError
from stockledger.services.stock_posting_service import check_can_produce, post_movement


def test_bakery_day(test_db):
    """Test: Intake → Production → Sale → Count → Reconcile."""

    # Setup: catalog
    flour = item_service.create_item("MP-FLOUR", "Flour", "raw_material", "kg", minimum_stock=5)
    yeast = item_service.create_item("MP-YEAST", "Yeast", "raw_material", "kg")
    bread = item_service.create_item("PT-BREAD", "Bread", "finished_good", "unit", minimum_stock=2)

    # Production is blocked until a recipe exists
    blocked = post_movement(ProduceFinishedGood(bread.id, 1), user_id="baker")
    assert isinstance(blocked.error, NoRecipeError)

    recipe_service.upsert_recipe(
        bread.id,
        [
            ComponentInput(raw_material_id=flour.id, quantity_required="0.5"),
            ComponentInput(raw_material_id=yeast.id, quantity_required="0.01"),
        ],
    )

    # Morning delivery
    assert post_movement(IntakeRawMaterial(flour.id, 25, note="Mill"), user_id="clerk").success
    assert post_movement(IntakeRawMaterial(yeast.id, "0.5"), user_id="clerk").success

    # Dry run, then bake 40 loaves
    assert check_can_produce(bread.id, 40)["can_produce"] is True
    baked = post_movement(ProduceFinishedGood(bread.id, 40), user_id="baker")
    assert baked.success, baked.error
    assert [m.kind for m in baked.movements] == [
        MovementKind.PRODUCTION.value,
        MovementKind.CONSUMPTION.value,
        MovementKind.CONSUMPTION.value,
    ]

    # Flour 25 - 20 = 5, yeast 0.5 - 0.4 = 0.1
    assert item_service.get_item(flour.id).current_stock == Decimal("5")
    assert item_service.get_item(yeast.id).current_stock == Decimal("0.1")

    # Second batch needs 0.11 yeast: rejected without touching anything
    rejected = post_movement(ProduceFinishedGood(bread.id, 11), user_id="baker")
    assert isinstance(rejected.error, InsufficientStockError)
    assert {s.item_code for s in rejected.error.shortfalls} == {"MP-FLOUR", "MP-YEAST"}
    assert item_service.get_item(bread.id).current_stock == Decimal("40")

    # Sales
    assert post_movement(WithdrawFinishedGood(bread.id, 39), user_id="till").success
    assert [i.code for i in item_service.get_low_stock_items()] == ["PT-BREAD"]

    # Evening stock count finds spilled flour
    count = post_movement(Adjustment(flour.id, "4.25", note="Spill"), user_id="clerk")
    assert count.movements[0].quantity == Decimal("-0.75")

    # The ledger explains every stock level
    assert movement_service.reconcile_stock() == []
    for item in (flour, yeast, bread):
        assert movement_service.replay_item_stock(item.id) == item_service.get_item(
            item.id
        ).current_stock

    history = movement_service.list_movements()
    assert len(history) == 7
    assert history[0].note == "Spill"
    assert {m.user_id for m in history} == {"clerk", "baker", "till"}

    # Items with history stay in the catalog
    summary = item_service.get_inventory_summary()
    assert summary["total_items"] == 3
