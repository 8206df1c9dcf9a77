"""
Finance Ledger - Source Package

A single-session personal finance ledger: income and expense entries per
account, persisted to per-account flat files, with balance, period and
category aggregates computed on demand.

DESIGN PRINCIPLES:
1. The balance always equals the signed sum of the entries
2. Every mutation rewrites the account record
3. Expected failures come back as results, not exceptions
4. Every session operation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Ledger Team"
