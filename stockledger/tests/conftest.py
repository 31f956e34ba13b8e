"""Pytest configuration and fixtures for service layer tests."""

import pytest
from sqlalchemy.orm import sessionmaker, scoped_session

import stockledger.models  # noqa: F401  (registers every table on Base)
from stockledger.models.base import Base
from stockledger.services.database import create_database_engine


@pytest.fixture(scope="function")
def test_db(monkeypatch):
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database (with the same pragmas and
       BEGIN IMMEDIATE listener as the application engine)
    2. Creates all tables
    3. Provides the database to the test
    4. Drops all tables after the test completes
    """
    engine = create_database_engine("sqlite:///:memory:")

    # Create all tables
    Base.metadata.create_all(engine)

    # Create session factory
    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    # Monkey-patch the global session factory for tests
    import stockledger.services.database as db_module

    monkeypatch.setattr(db_module, "get_session_factory", lambda: Session)

    # Provide database to test
    yield Session

    # Cleanup
    Session.remove()
    try:
        Base.metadata.drop_all(engine)
    finally:
        engine.dispose()


@pytest.fixture(scope="function")
def flour(test_db):
    """Raw material MP-A with no stock."""
    from stockledger.services import item_service

    return item_service.create_item("MP-A", "Flour", "raw_material", "kg", minimum_stock=5)


@pytest.fixture(scope="function")
def sugar(test_db):
    """Raw material MP-B with no stock."""
    from stockledger.services import item_service

    return item_service.create_item("MP-B", "Sugar", "raw_material", "kg")


@pytest.fixture(scope="function")
def cake(test_db):
    """Finished good PT-CAKE with no stock and no recipe."""
    from stockledger.services import item_service

    return item_service.create_item("PT-CAKE", "Cake", "finished_good", "unit")


@pytest.fixture(scope="function")
def cake_recipe(cake, flour, sugar):
    """Recipe: one cake needs 2 MP-A and 3 MP-B."""
    from stockledger.services import recipe_service
    from stockledger.services.dto import ComponentInput

    return recipe_service.upsert_recipe(
        cake.id,
        [
            ComponentInput(raw_material_id=flour.id, quantity_required=2),
            ComponentInput(raw_material_id=sugar.id, quantity_required=3),
        ],
    )


@pytest.fixture(scope="function")
def set_stock(test_db):
    """Bring an item to a stock level through an adjustment posting."""
    from stockledger.services.dto import Adjustment
    from stockledger.services.stock_posting_service import post_movement

    def _set_stock(item, level, user_id="setup"):
        result = post_movement(Adjustment(item_id=item.id, target_stock=level), user_id=user_id)
        assert result.success, result.error
        return result

    return _set_stock
