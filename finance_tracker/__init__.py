"""
Finance Tracker - Source Package

The core of a personal finance tracker: a ledger that keeps each user's
balance, income and expense totals consistent with their transaction
history, a statistics aggregator for charts, and registries for wallets
and bills.

DESIGN PRINCIPLES:
1. Aggregate totals change only inside an atomic unit
2. Fail early, fail visibly
3. No silent corrections
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
