"""Datetime helpers for ledger timestamps.

Usage:
    from stockledger.utils.datetime_utils import utc_now

    created_at = Column(DateTime, default=utc_now)
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> str:
    """Render a stored timestamp for listings.

    SQLite hands back naive datetimes; they are UTC by construction.

    Returns:
        "YYYY-MM-DD HH:MM:SS" or an empty string for None
    """
    if value is None:
        return ""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d %H:%M:%S")
