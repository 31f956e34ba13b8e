"""
Constants for the Stock Ledger application.

This module defines all system-wide constants including:
- Application metadata
- Quantity precision
- Field length limits
- Ledger query limits
- Error message templates
"""

from decimal import Decimal

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Stock Ledger"
APP_VERSION = "0.1.0"
DATABASE_VERSION = "1.0"

# ============================================================================
# Database Configuration
# ============================================================================

DATABASE_FILENAME = "stock_ledger.db"
APP_DATA_DIRNAME = "StockLedger"

# Environment variables
ENV_VAR_ENVIRONMENT = "STOCKLEDGER_ENV"
ENV_VAR_DATABASE_URL = "STOCKLEDGER_DATABASE_URL"
ENV_VAR_LOG_LEVEL = "STOCKLEDGER_LOG_LEVEL"
ENV_VAR_USER = "STOCKLEDGER_USER"

# Seconds a SQLite writer waits for the database lock
SQLITE_BUSY_TIMEOUT = 30

# ============================================================================
# Quantities
# ============================================================================

# Stock quantities are stored as Numeric(14, 4)
QUANTITY_DECIMAL_PLACES = 4
QUANTITY_PRECISION = 14
QUANTITY_QUANTUM = Decimal("0.0001")

MAX_QUANTITY = Decimal("9999999999.9999")

# ============================================================================
# Field Lengths
# ============================================================================

MAX_CODE_LENGTH = 50
MAX_DESCRIPTION_LENGTH = 200
MAX_UNIT_LENGTH = 20
MAX_NOTE_LENGTH = 500
MAX_USER_ID_LENGTH = 64

# ============================================================================
# Ledger
# ============================================================================

# The movement history view shows the 100 most recent rows
MOVEMENT_HISTORY_LIMIT = 100

# ============================================================================
# Error Messages
# ============================================================================

ERROR_REQUIRED_FIELD = "This field is required"
ERROR_INVALID_NUMBER = "Must be a valid number"
ERROR_INVALID_POSITIVE = "Must be greater than zero"
ERROR_INVALID_NON_NEGATIVE = "Must be zero or positive"
ERROR_TOO_LONG = "Must be {max_length} characters or less"
