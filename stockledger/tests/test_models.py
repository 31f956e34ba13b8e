"""Tests for the ORM models and their table constraints."""

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from stockledger.models import (
    Item,
    ItemKind,
    Movement,
    MovementComponent,
    MovementKind,
    RecipeComponent,
)


def _item(code="MP-X", kind=ItemKind.RAW_MATERIAL, **kwargs):
    values = {
        "code": code,
        "description": f"Item {code}",
        "kind": kind.value,
        "unit_of_measure": "kg",
        "minimum_stock": Decimal("0"),
        "current_stock": Decimal("0"),
    }
    values.update(kwargs)
    return Item(**values)


class TestItemModel:
    """Tests for Item."""

    def test_defaults_and_properties(self, test_db):
        session = test_db()
        item = _item(minimum_stock=Decimal("3"))
        session.add(item)
        session.flush()

        assert item.id is not None
        assert len(item.uuid) == 36
        assert item.created_at is not None
        assert item.item_kind is ItemKind.RAW_MATERIAL
        assert item.is_raw_material and not item.is_finished_good
        assert item.is_low_stock is True
        assert "MP-X" in repr(item)

    def test_kind_check_constraint(self, test_db):
        session = test_db()
        session.add(Item(code="BAD", description="Bad", kind="service", unit_of_measure="h"))

        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()

    def test_code_unique(self, test_db):
        session = test_db()
        session.add(_item("DUP"))
        session.flush()
        session.add(_item("DUP"))

        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()

    def test_negative_minimum_rejected_by_store(self, test_db):
        session = test_db()
        session.add(_item(minimum_stock=Decimal("-1")))

        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()


class TestMovementModel:
    """Tests for Movement and MovementComponent."""

    def test_zero_quantity_rejected_by_store(self, test_db):
        session = test_db()
        item = _item()
        session.add(item)
        session.flush()
        session.add(
            Movement(
                item_id=item.id,
                kind=MovementKind.ADJUSTMENT.value,
                quantity=Decimal("0"),
                user_id="u-1",
                stock_before=Decimal("0"),
                stock_after=Decimal("0"),
            )
        )

        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()

    def test_unknown_kind_rejected_by_store(self, test_db):
        session = test_db()
        item = _item()
        session.add(item)
        session.flush()
        session.add(
            Movement(
                item_id=item.id,
                kind="ENT",
                quantity=Decimal("1"),
                user_id="u-1",
                stock_before=Decimal("0"),
                stock_after=Decimal("1"),
            )
        )

        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()

    def test_production_links_and_components(self, test_db):
        session = test_db()
        finished = _item("PT-X", ItemKind.FINISHED_GOOD)
        raw = _item("MP-X")
        session.add_all([finished, raw])
        session.flush()

        production = Movement(
            item=finished,
            kind=MovementKind.PRODUCTION.value,
            quantity=Decimal("1"),
            user_id="u-1",
            stock_before=Decimal("0"),
            stock_after=Decimal("1"),
        )
        production.components.append(
            MovementComponent(
                component_item_id=raw.id, component_code="MP-X", quantity_consumed=Decimal("2")
            )
        )
        consumption = Movement(
            item=raw,
            kind=MovementKind.CONSUMPTION.value,
            quantity=Decimal("-2"),
            user_id="u-1",
            stock_before=Decimal("2"),
            stock_after=Decimal("0"),
            production_movement=production,
        )
        session.add_all([production, consumption])
        session.flush()

        assert consumption.production_movement_id == production.id
        assert production.consumption_movements == [consumption]
        assert production.movement_kind is MovementKind.PRODUCTION
        data = production.to_dict(include_relationships=True)
        assert data["item_code"] == "PT-X"
        assert data["components"][0]["component_code"] == "MP-X"
        assert data["quantity"] == "1"

    def test_item_with_movements_cannot_be_deleted_by_store(self, test_db):
        session = test_db()
        item = _item()
        session.add(item)
        session.flush()
        session.add(
            Movement(
                item=item,
                kind=MovementKind.INTAKE.value,
                quantity=Decimal("1"),
                user_id="u-1",
                stock_before=Decimal("0"),
                stock_after=Decimal("1"),
            )
        )
        session.commit()

        session.delete(item)
        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()


class TestRecipeComponentModel:
    """Tests for RecipeComponent."""

    def test_positive_quantity_required(self, test_db):
        session = test_db()
        finished = _item("PT-X", ItemKind.FINISHED_GOOD)
        raw = _item("MP-X")
        session.add_all([finished, raw])
        session.flush()
        session.add(
            RecipeComponent(
                finished_good_id=finished.id, raw_material_id=raw.id, quantity_required=Decimal("0")
            )
        )

        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()

    def test_relationships(self, test_db):
        session = test_db()
        finished = _item("PT-X", ItemKind.FINISHED_GOOD)
        raw = _item("MP-X")
        session.add_all([finished, raw])
        session.flush()
        component = RecipeComponent(
            finished_good=finished, raw_material=raw, quantity_required=Decimal("1.5")
        )
        session.add(component)
        session.flush()

        assert finished.recipe_components == [component]
        assert component.raw_material.code == "MP-X"
