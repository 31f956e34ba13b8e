"""Tests for ledger reads, stock replay and reconciliation."""

import logging
from decimal import Decimal

import pytest

from stockledger.models import Item, MovementKind
from stockledger.services import movement_service
from stockledger.services.dto import IntakeRawMaterial, ProduceFinishedGood, WithdrawFinishedGood
from stockledger.services.exceptions import (
    ItemNotFoundError,
    MovementNotFoundError,
    ValidationError,
)
from stockledger.services.stock_posting_service import post_movement


@pytest.fixture
def posted_history(test_db, cake, flour, sugar, cake_recipe):
    """Intakes, one production and one withdrawal."""
    post_movement(IntakeRawMaterial(flour.id, 10), user_id="u-1")
    post_movement(IntakeRawMaterial(sugar.id, 10), user_id="u-1")
    production = post_movement(ProduceFinishedGood(cake.id, 2), user_id="u-2")
    post_movement(WithdrawFinishedGood(cake.id, 1), user_id="u-2")
    return production


class TestListMovements:
    """Tests for list_movements()."""

    def test_newest_first(self, test_db, posted_history):
        movements = movement_service.list_movements()

        assert len(movements) == 6
        ids = [m.id for m in movements]
        assert ids == sorted(ids, reverse=True)
        assert movements[0].kind == MovementKind.WITHDRAWAL.value

    def test_filter_by_item(self, test_db, cake, posted_history):
        movements = movement_service.list_movements(item_id=cake.id)

        assert [m.kind for m in movements] == [
            MovementKind.WITHDRAWAL.value,
            MovementKind.PRODUCTION.value,
        ]

    def test_filter_by_kind(self, test_db, posted_history):
        movements = movement_service.list_movements(kind="consumption_for_production")

        assert sorted(m.item.code for m in movements) == ["MP-A", "MP-B"]

    def test_limit(self, test_db, posted_history):
        assert len(movement_service.list_movements(limit=2)) == 2
        assert len(movement_service.list_movements(limit=None)) == 6

    def test_invalid_filters(self, test_db):
        with pytest.raises(ValidationError):
            movement_service.list_movements(kind="theft")
        with pytest.raises(ValidationError):
            movement_service.list_movements(limit=0)

    def test_default_limit_caps_history(self, test_db, flour):
        for _ in range(105):
            post_movement(IntakeRawMaterial(flour.id, 1), user_id="u-1")

        assert len(movement_service.list_movements()) == 100


class TestGetMovement:
    """Tests for get_movement()."""

    def test_production_row_carries_components(self, test_db, posted_history):
        production_id = posted_history.movements[0].movement_id

        movement = movement_service.get_movement(production_id)

        assert movement.kind == MovementKind.PRODUCTION.value
        assert [(c.component_code, c.quantity_consumed) for c in movement.components] == [
            ("MP-A", Decimal("4")),
            ("MP-B", Decimal("6")),
        ]
        assert movement.to_dict()["item_code"] == "PT-CAKE"

    def test_unknown_movement(self, test_db):
        with pytest.raises(MovementNotFoundError):
            movement_service.get_movement(31337)


class TestReconciliation:
    """Tests for replay_item_stock() and reconcile_stock()."""

    def test_replay_matches_stock(self, test_db, cake, flour, sugar, posted_history):
        assert movement_service.replay_item_stock(cake.id) == Decimal("1")
        assert movement_service.replay_item_stock(flour.id) == Decimal("6")
        assert movement_service.replay_item_stock(sugar.id) == Decimal("4")

    def test_replay_without_movements_is_zero(self, test_db, flour):
        assert movement_service.replay_item_stock(flour.id) == Decimal("0")

    def test_replay_unknown_item(self, test_db):
        with pytest.raises(ItemNotFoundError):
            movement_service.replay_item_stock(404)

    def test_consistent_store(self, test_db, posted_history):
        assert movement_service.reconcile_stock() == []

    def test_detects_tampered_stock(self, test_db, flour, posted_history, caplog):
        session = test_db()
        session.get(Item, flour.id).current_stock = Decimal("99")
        session.commit()

        with caplog.at_level(logging.WARNING, logger="stockledger.services"):
            discrepancies = movement_service.reconcile_stock()

        assert discrepancies == [
            {
                "item_id": flour.id,
                "item_code": "MP-A",
                "current_stock": Decimal("99"),
                "ledger_stock": Decimal("6"),
                "difference": Decimal("93"),
            }
        ]
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert warnings[0].outcome == "discrepancy"
        assert warnings[0].item_code == "MP-A"
