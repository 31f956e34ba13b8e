"""Stock Ledger - inventory posting, recipes and movement ledger."""

from stockledger.utils.constants import APP_VERSION as __version__  # noqa: F401
