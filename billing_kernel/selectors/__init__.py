"""Selectors for the billing kernel (read side)."""

from billing_kernel.selectors.ledger_selector import LedgerSnapshotSelector

__all__ = [
    "LedgerSnapshotSelector",
]
