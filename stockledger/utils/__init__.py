"""Utilities package for Stock Ledger: configuration, constants, validators and the CLI."""
