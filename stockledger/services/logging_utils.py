"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across posting, recipe and ledger
operations.

Usage:
    from stockledger.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    # Log successful operation
    log_operation(
        logger,
        operation="post_movement",
        outcome="success",
        item_id=12,
        movement_ids=[101],
    )

    # Log validation failure
    log_operation(
        logger,
        operation="post_movement",
        outcome="InsufficientStockError",
        level=logging.WARNING,
        item_id=12,
    )
"""

import logging
from typing import Any, Optional

LOGGER_PREFIX = "stockledger.services"
DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# LogRecord attributes that context keys must not overwrite
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime"}


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger named 'stockledger.services.<module>'.

    Example:
        >>> logger = get_service_logger("stockledger.services.stock_posting_service")
        >>> logger.name
        'stockledger.services.stock_posting_service'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The context is passed via the 'extra' parameter so handlers and
    formatters can read each field as a record attribute.

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "post_movement", "upsert_recipe")
        outcome: Outcome description (e.g., "success", "no_op", an error class name)
        level: Log level (default: INFO)
        **context: Additional context fields (entity IDs, error details, etc.)
            Common fields:
            - item_id: Item the operation targeted
            - movement_ids: IDs of ledger rows written
            - user_id: Acting user
            - error: Error message when the outcome is a failure
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
    }
    for key, value in context.items():
        # Keys like "name" or "msg" would clash with LogRecord attributes
        extra[f"ctx_{key}" if key in _RESERVED_ATTRS else key] = value
    logger.log(level, f"{operation}: {outcome}", extra=extra)


def configure_logging(level: Optional[int] = None, fmt: str = DEFAULT_LOG_FORMAT) -> None:
    """
    Configure root logging for command-line use.

    Args:
        level: Log level; defaults to the configured STOCKLEDGER_LOG_LEVEL
        fmt: Log format string
    """
    if level is None:
        from stockledger.utils.config import get_config

        level = get_config().log_level
    logging.basicConfig(level=level, format=fmt)
    # Engine chatter stays at WARNING unless SQL echo is wanted
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
