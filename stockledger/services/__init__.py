"""Services package - Business logic layer for Stock Ledger.

Architecture:
- Services: Stateless functions organized by domain (items, recipes, ledger, posting)
- Transactions: Managed via session_scope() context manager; every public
  function also accepts an optional caller-owned session
- Exceptions: Consistent error handling via the ServiceError hierarchy
- Validation: Input validation before any database write

Service Modules:
- item_service: Item catalog CRUD and low-stock queries
- recipe_service: Recipe resolution and atomic replacement
- movement_service: Ledger queries, stock replay and reconciliation
- stock_posting_service: Validates and posts stock movements

Infrastructure:
- database: Engine, session management and schema initialization
- dto: Request and result data structures
- exceptions: Custom exception classes for service layer errors
- logging_utils: Structured service logging

Modules are imported directly (``from stockledger.services import item_service``);
the package does not import them eagerly because the models import the
exception hierarchy from here.
"""
