"""Tests for the item catalog service."""

from decimal import Decimal

import pytest

from stockledger.services import item_service
from stockledger.services.dto import IntakeRawMaterial
from stockledger.services.exceptions import (
    InvalidQuantityError,
    ItemCodeExistsError,
    ItemInUseError,
    ItemNotFoundError,
    ValidationError,
)
from stockledger.services.stock_posting_service import post_movement


class TestCreateItem:
    """Tests for create_item()."""

    def test_create_item_starts_with_zero_stock(self, test_db):
        item = item_service.create_item(
            " MP-010 ", "Butter", "raw_material", "kg", minimum_stock="2.5", unit_value="4.20"
        )

        assert item.id is not None
        assert item.uuid is not None
        assert item.code == "MP-010"
        assert item.current_stock == Decimal("0")
        assert item.minimum_stock == Decimal("2.5")
        assert item.unit_value == Decimal("4.2")
        assert item.is_raw_material is True
        assert item.is_low_stock is True

    def test_duplicate_code_rejected(self, test_db, flour):
        with pytest.raises(ItemCodeExistsError):
            item_service.create_item("MP-A", "Other flour", "raw_material", "kg")

    def test_invalid_kind_rejected(self, test_db):
        with pytest.raises(ValidationError):
            item_service.create_item("X-1", "Thing", "gadget", "unit")

    @pytest.mark.parametrize(
        "field,kwargs",
        [
            ("code", {"code": "  "}),
            ("description", {"description": ""}),
            ("unit_of_measure", {"unit_of_measure": None}),
        ],
    )
    def test_required_fields(self, test_db, field, kwargs):
        values = {
            "code": "X-1",
            "description": "Thing",
            "kind": "raw_material",
            "unit_of_measure": "unit",
        }
        values.update(kwargs)

        with pytest.raises(ValidationError) as exc_info:
            item_service.create_item(**values)
        assert field in str(exc_info.value)

    def test_negative_minimum_rejected(self, test_db):
        with pytest.raises(InvalidQuantityError):
            item_service.create_item("X-1", "Thing", "raw_material", "unit", minimum_stock=-1)

    def test_to_dict_serializes_decimals(self, test_db, flour):
        data = item_service.get_item(flour.id).to_dict()

        assert data["code"] == "MP-A"
        assert data["current_stock"] == "0.0000"
        assert data["is_low_stock"] is True
        assert isinstance(data["created_at"], str)


class TestReadItems:
    """Tests for lookups, listing, low stock and the summary."""

    def test_get_item_and_by_code(self, test_db, flour):
        assert item_service.get_item(flour.id).code == "MP-A"
        assert item_service.get_item_by_code("MP-A").id == flour.id
        assert item_service.get_item(999) is None
        assert item_service.get_item_by_code("NOPE") is None

    def test_session_is_keyword_only(self, test_db, flour):
        session = test_db()

        assert item_service.get_item(flour.id, session=session).code == "MP-A"
        with pytest.raises(TypeError):
            item_service.get_item(flour.id, session)
        with pytest.raises(TypeError):
            item_service.list_items("raw_material", session)

    def test_list_items_ordered_by_description(self, test_db, flour, sugar, cake):
        assert [i.description for i in item_service.list_items()] == ["Cake", "Flour", "Sugar"]
        assert [i.code for i in item_service.list_items(kind="raw_material")] == ["MP-A", "MP-B"]

    def test_low_stock_items(self, test_db, flour, sugar, cake):
        item_service.update_item(sugar.id, {"minimum_stock": 1})
        post_movement(IntakeRawMaterial(flour.id, 20), user_id="u-1")

        low = item_service.get_low_stock_items()

        assert [i.code for i in low] == ["MP-B"]

    def test_inventory_summary(self, test_db, flour, sugar, cake):
        summary = item_service.get_inventory_summary()

        assert summary == {
            "total_items": 3,
            "raw_materials": 2,
            "finished_goods": 1,
            "low_stock": 1,
        }


class TestUpdateItem:
    """Tests for update_item()."""

    def test_update_descriptive_fields(self, test_db, flour):
        item = item_service.update_item(
            flour.id, {"description": "Wheat flour", "minimum_stock": "0", "code": "MP-A1"}
        )

        assert item.description == "Wheat flour"
        assert item.code == "MP-A1"
        assert item.is_low_stock is False

    @pytest.mark.parametrize("field", ["current_stock", "kind", "id"])
    def test_protected_fields_rejected(self, test_db, flour, field):
        with pytest.raises(ValidationError):
            item_service.update_item(flour.id, {field: 100})

        assert item_service.get_item(flour.id).current_stock == Decimal("0")

    def test_code_collision_rejected(self, test_db, flour, sugar):
        with pytest.raises(ItemCodeExistsError):
            item_service.update_item(sugar.id, {"code": "MP-A"})

    def test_unknown_item(self, test_db):
        with pytest.raises(ItemNotFoundError):
            item_service.update_item(404, {"description": "x"})


class TestDeleteItem:
    """Tests for delete_item()."""

    def test_delete_unused_item(self, test_db, flour):
        assert item_service.delete_item(flour.id) is True
        assert item_service.get_item(flour.id) is None

    def test_item_with_ledger_rows_cannot_be_deleted(self, test_db, flour):
        post_movement(IntakeRawMaterial(flour.id, 1), user_id="u-1")

        with pytest.raises(ItemInUseError) as exc_info:
            item_service.delete_item(flour.id)

        assert exc_info.value.movement_count == 1
        assert item_service.get_item(flour.id) is not None

    def test_unknown_item(self, test_db):
        with pytest.raises(ItemNotFoundError):
            item_service.delete_item(404)
