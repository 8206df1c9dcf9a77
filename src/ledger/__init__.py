"""Ledger aggregate package."""

from src.ledger.account import EntryIndexError, Ledger

__all__ = ["EntryIndexError", "Ledger"]
