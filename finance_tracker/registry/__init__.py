"""Wallet, bill and profile registries."""

from finance_tracker.registry.bills import BillRegistry, compute_due_date
from finance_tracker.registry.profiles import ProfileRegistry
from finance_tracker.registry.wallets import WalletRegistry, wallet_label

__all__ = [
    "BillRegistry",
    "ProfileRegistry",
    "WalletRegistry",
    "compute_due_date",
    "wallet_label",
]
