"""
Stock Ledger CLI Utility

Command-line interface for the item catalog, recipes and stock postings.
No UI required - designed for scripted and testing use. Items are named by
their code on the command line.

Usage Examples:
    # Create the database
    stockledger init-db

    # Register items
    stockledger add-item MP-001 "Flour" raw_material kg --minimum 10
    stockledger add-item PT-001 "Bread" finished_good unit

    # Define a recipe (per unit of finished good)
    stockledger set-recipe PT-001 MP-001=0.5 MP-002=0.01

    # Post movements (user from --user or STOCKLEDGER_USER)
    stockledger intake MP-001 25 --user alice --note "Supplier delivery"
    stockledger produce PT-001 10 --user alice
    stockledger withdraw PT-001 4 --user alice
    stockledger adjust MP-001 19.5 --user alice --note "Stock count"

    # Inspect
    stockledger movements --item PT-001
    stockledger reconcile
"""

import argparse
import os
import sys
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from stockledger.models import ItemKind, MovementKind
from stockledger.services import item_service, movement_service, recipe_service
from stockledger.services.database import initialize_app_database
from stockledger.services.dto import (
    Adjustment,
    ComponentInput,
    IntakeRawMaterial,
    ProduceFinishedGood,
    WithdrawFinishedGood,
)
from stockledger.services.exceptions import ServiceError
from stockledger.services.logging_utils import configure_logging
from stockledger.services.stock_posting_service import check_can_produce, post_movement
from stockledger.utils.config import get_config
from stockledger.utils.constants import APP_NAME, ENV_VAR_USER, MOVEMENT_HISTORY_LIMIT
from stockledger.utils.datetime_utils import format_timestamp


def _resolve_item_id(code: str) -> Optional[int]:
    try:
        item = item_service.get_item_by_code(code)
    except (ServiceError, SQLAlchemyError) as e:
        print(f"ERROR: {e}")
        return None
    if item is None:
        print(f"ERROR: Item '{code}' not found")
        return None
    return item.id


def _resolve_user(user: Optional[str]) -> Optional[str]:
    user = user or os.environ.get(ENV_VAR_USER)
    if not user:
        print(f"ERROR: No user given; pass --user or set {ENV_VAR_USER}")
    return user


def init_db_cmd():
    """Report the database the CLI is using (tables are created on startup)."""
    config = get_config()
    print(f"{config.app_name} {config.app_version} (schema {config.database_version})")
    print(f"Database ready: {config.database_url}")
    return 0


# ============================================================================
# Item Commands
# ============================================================================


def add_item_cmd(code, description, kind, unit, minimum, unit_value):
    """Create an item with zero stock."""
    try:
        item = item_service.create_item(
            code, description, kind, unit, minimum_stock=minimum, unit_value=unit_value
        )
    except (ServiceError, SQLAlchemyError) as e:
        print(f"ERROR: {e}")
        return 1

    print(f"Created {item.kind} {item.code} ({item.description}), id {item.id}")
    return 0


def list_items_cmd(kind: Optional[str] = None):
    """Print the item catalog."""
    try:
        items = item_service.list_items(kind=kind)
    except (ServiceError, SQLAlchemyError) as e:
        print(f"ERROR: {e}")
        return 1

    if not items:
        print("No items found.")
        return 0

    print(f"{'CODE':<15} {'DESCRIPTION':<30} {'KIND':<14} {'STOCK':>14} {'MIN':>12}  UNIT")
    for item in items:
        flag = " !" if item.is_low_stock else ""
        print(
            f"{item.code:<15} {item.description[:30]:<30} {item.kind:<14} "
            f"{item.current_stock:>14} {item.minimum_stock:>12}  {item.unit_of_measure}{flag}"
        )
    return 0


def low_stock_cmd():
    """Print items below their minimum stock."""
    try:
        items = item_service.get_low_stock_items()
    except (ServiceError, SQLAlchemyError) as e:
        print(f"ERROR: {e}")
        return 1

    if not items:
        print("No items below minimum stock.")
        return 0

    for item in items:
        print(
            f"{item.code}: {item.current_stock} {item.unit_of_measure} "
            f"(minimum {item.minimum_stock})"
        )
    return 0


def summary_cmd():
    """Print inventory counts."""
    try:
        summary = item_service.get_inventory_summary()
    except (ServiceError, SQLAlchemyError) as e:
        print(f"ERROR: {e}")
        return 1

    print(f"\n{APP_NAME} Summary")
    print("-------------------")
    print(f"Items: {summary['total_items']}")
    print(f"Raw materials: {summary['raw_materials']}")
    print(f"Finished goods: {summary['finished_goods']}")
    print(f"Below minimum: {summary['low_stock']}")
    return 0


# ============================================================================
# Posting Commands
# ============================================================================


def _post(request, user: str):
    result = post_movement(request, user_id=user)

    if not result.success:
        print(f"ERROR: {result.error}")
        return 1
    if result.is_no_op:
        print("Stock already at target; nothing posted.")
        return 0

    for movement in result.movements:
        print(
            f"#{movement.movement_id} {movement.kind} {movement.item_code}: "
            f"{movement.quantity:+} ({movement.stock_before} -> {movement.stock_after})"
        )
    return 0


def post_cmd(command: str, code: str, quantity: str, user: Optional[str], note: Optional[str]):
    """Post an intake, withdrawal, adjustment or production."""
    user = _resolve_user(user)
    if not user:
        return 1
    item_id = _resolve_item_id(code)
    if item_id is None:
        return 1

    if command == "intake":
        request = IntakeRawMaterial(item_id=item_id, quantity=quantity, note=note)
    elif command == "withdraw":
        request = WithdrawFinishedGood(item_id=item_id, quantity=quantity, note=note)
    elif command == "adjust":
        request = Adjustment(item_id=item_id, target_stock=quantity, note=note)
    else:
        request = ProduceFinishedGood(item_id=item_id, quantity=quantity, note=note)
    return _post(request, user)


def check_production_cmd(code: str, quantity: str):
    """Report whether a production would pass the stock check."""
    item_id = _resolve_item_id(code)
    if item_id is None:
        return 1

    try:
        result = check_can_produce(item_id, quantity)
    except (ServiceError, SQLAlchemyError) as e:
        print(f"ERROR: {e}")
        return 1

    for requirement in result["requirements"]:
        print(f"  {requirement['item_code']}: {requirement['required']}")
    if result["can_produce"]:
        print(f"Enough stock to produce {quantity} x {code}.")
        return 0

    print("Missing:")
    for missing in result["missing"]:
        print(
            f"  - {missing['item_code']}: required {missing['required']}, "
            f"available {missing['available']}"
        )
    return 1


# ============================================================================
# Recipe Commands
# ============================================================================


def set_recipe_cmd(code: str, components: List[str]):
    """Replace a finished good's recipe from CODE=QTY pairs."""
    finished_good_id = _resolve_item_id(code)
    if finished_good_id is None:
        return 1

    inputs = []
    for pair in components:
        raw_code, sep, quantity = pair.partition("=")
        if not sep:
            print(f"ERROR: Component '{pair}' must look like CODE=QUANTITY")
            return 1
        raw_material_id = _resolve_item_id(raw_code.strip())
        if raw_material_id is None:
            return 1
        inputs.append(ComponentInput(raw_material_id=raw_material_id, quantity_required=quantity))

    try:
        recipe = recipe_service.upsert_recipe(finished_good_id, inputs)
    except (ServiceError, SQLAlchemyError) as e:
        print(f"ERROR: {e}")
        return 1

    if recipe is None:
        print(f"Recipe for {code} deleted.")
        return 0
    _print_recipe(recipe)
    return 0


def delete_recipe_cmd(code: str):
    """Delete a finished good's recipe."""
    finished_good_id = _resolve_item_id(code)
    if finished_good_id is None:
        return 1

    try:
        deleted = recipe_service.delete_recipe(finished_good_id)
    except (ServiceError, SQLAlchemyError) as e:
        print(f"ERROR: {e}")
        return 1

    if deleted:
        print(f"Recipe for {code} deleted.")
    else:
        print(f"{code} has no recipe.")
    return 0


def list_recipes_cmd():
    """Print every usable recipe."""
    try:
        recipes = recipe_service.list_recipes()
    except (ServiceError, SQLAlchemyError) as e:
        print(f"ERROR: {e}")
        return 1

    if not recipes:
        print("No recipes found.")
        return 0
    for recipe in recipes:
        _print_recipe(recipe)
    return 0


def _print_recipe(recipe):
    print(f"{recipe.finished_good_code}:")
    for line in recipe.components:
        print(f"  {line.raw_material_code} x {line.quantity_required}")


# ============================================================================
# Ledger Commands
# ============================================================================


def movements_cmd(code: Optional[str], kind: Optional[str], limit: int):
    """Print the newest ledger rows."""
    item_id = None
    if code:
        item_id = _resolve_item_id(code)
        if item_id is None:
            return 1

    try:
        movements = movement_service.list_movements(item_id=item_id, kind=kind, limit=limit)
    except (ServiceError, SQLAlchemyError) as e:
        print(f"ERROR: {e}")
        return 1

    if not movements:
        print("No movements found.")
        return 0

    for movement in movements:
        line = (
            f"{format_timestamp(movement.created_at)}  #{movement.id:<6} "
            f"{movement.kind:<27} {movement.item.code:<15} {movement.quantity:>+14} "
            f"-> {movement.stock_after:<14} {movement.user_id}"
        )
        if movement.note:
            line += f"  {movement.note}"
        print(line)
    return 0


def reconcile_cmd():
    """Compare item stock with the replayed ledger."""
    try:
        discrepancies = movement_service.reconcile_stock()
    except (ServiceError, SQLAlchemyError) as e:
        print(f"ERROR: {e}")
        return 1

    if not discrepancies:
        print("Item stock matches the ledger.")
        return 0

    print("Discrepancies found:")
    for entry in discrepancies:
        print(
            f"  - {entry['item_code']}: stock {entry['current_stock']}, "
            f"ledger {entry['ledger_stock']} (difference {entry['difference']})"
        )
    return 1


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="stockledger",
        description=f"Command-line utility for {APP_NAME}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("init-db", help="Create the database tables")

    add_item_parser = subparsers.add_parser("add-item", help="Register an item")
    add_item_parser.add_argument("code", help="Unique item code")
    add_item_parser.add_argument("description", help="Item description")
    add_item_parser.add_argument(
        "kind", choices=[k.value for k in ItemKind], help="Item kind"
    )
    add_item_parser.add_argument("unit", help="Unit of measure")
    add_item_parser.add_argument(
        "--minimum", default="0", help="Minimum stock before the item is flagged (default: 0)"
    )
    add_item_parser.add_argument("--unit-value", dest="unit_value", help="Value per unit")

    items_parser = subparsers.add_parser("items", help="List items")
    items_parser.add_argument("--kind", choices=[k.value for k in ItemKind], help="Filter by kind")

    subparsers.add_parser("low-stock", help="List items below minimum stock")
    subparsers.add_parser("summary", help="Show inventory counts")

    for command, help_text, value_help in (
        ("intake", "Receive raw material", "Quantity received"),
        ("withdraw", "Withdraw finished goods", "Quantity withdrawn"),
        ("adjust", "Set an item's stock to a counted level", "Target stock level"),
        ("produce", "Produce finished goods from their recipe", "Quantity produced"),
    ):
        posting_parser = subparsers.add_parser(command, help=help_text)
        posting_parser.add_argument("code", help="Item code")
        posting_parser.add_argument("quantity", help=value_help)
        posting_parser.add_argument(
            "--user", help=f"Acting user (default: ${ENV_VAR_USER})"
        )
        posting_parser.add_argument("--note", help="Free-text note stored on the movement")

    check_parser = subparsers.add_parser(
        "check-production", help="Check stock for a production without posting"
    )
    check_parser.add_argument("code", help="Finished good code")
    check_parser.add_argument("quantity", help="Quantity to produce")

    set_recipe_parser = subparsers.add_parser("set-recipe", help="Replace a recipe")
    set_recipe_parser.add_argument("code", help="Finished good code")
    set_recipe_parser.add_argument(
        "components", nargs="*", metavar="CODE=QTY", help="Raw material and quantity per unit"
    )

    delete_recipe_parser = subparsers.add_parser("delete-recipe", help="Delete a recipe")
    delete_recipe_parser.add_argument("code", help="Finished good code")

    subparsers.add_parser("recipes", help="List recipes")

    movements_parser = subparsers.add_parser("movements", help="Show the newest movements")
    movements_parser.add_argument("--item", dest="code", help="Only movements for this item")
    movements_parser.add_argument(
        "--kind", choices=[k.value for k in MovementKind], help="Filter by movement kind"
    )
    movements_parser.add_argument(
        "--limit",
        type=int,
        default=MOVEMENT_HISTORY_LIMIT,
        help=f"Maximum rows (default: {MOVEMENT_HISTORY_LIMIT})",
    )

    subparsers.add_parser("reconcile", help="Compare item stock with the ledger")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    configure_logging()

    # Initialize database (required for all operations)
    initialize_app_database()

    # Execute command
    if args.command == "init-db":
        return init_db_cmd()
    elif args.command == "add-item":
        return add_item_cmd(
            args.code, args.description, args.kind, args.unit, args.minimum, args.unit_value
        )
    elif args.command == "items":
        return list_items_cmd(args.kind)
    elif args.command == "low-stock":
        return low_stock_cmd()
    elif args.command == "summary":
        return summary_cmd()
    elif args.command in ("intake", "withdraw", "adjust", "produce"):
        return post_cmd(args.command, args.code, args.quantity, args.user, args.note)
    elif args.command == "check-production":
        return check_production_cmd(args.code, args.quantity)
    elif args.command == "set-recipe":
        return set_recipe_cmd(args.code, args.components)
    elif args.command == "delete-recipe":
        return delete_recipe_cmd(args.code)
    elif args.command == "recipes":
        return list_recipes_cmd()
    elif args.command == "movements":
        return movements_cmd(args.code, args.kind, args.limit)
    elif args.command == "reconcile":
        return reconcile_cmd()
    else:
        print(f"Unknown command: {args.command}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
