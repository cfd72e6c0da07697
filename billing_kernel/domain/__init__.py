"""
Pure domain layer.

Immutable value objects and ledger documents with NO dependencies on
the ORM, the database, the clock or any other I/O.
"""

from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from billing_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from billing_kernel.domain.ledger import (
    CreditNote,
    CreditNoteStatus,
    DebitNote,
    DerivedStatus,
    DocumentKind,
    Invoice,
    LedgerDocument,
    Payment,
    TaxComponent,
    TaxSchedule,
    approved_credit_total,
    check_credit_note_cap,
    derive_status,
)
from billing_kernel.domain.values import Currency, Money, sum_money

__all__ = [
    # Values
    "Currency",
    "CurrencyInfo",
    "CurrencyRegistry",
    "Money",
    "sum_money",
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Ledger
    "CreditNote",
    "CreditNoteStatus",
    "DebitNote",
    "DerivedStatus",
    "DocumentKind",
    "Invoice",
    "LedgerDocument",
    "Payment",
    "TaxComponent",
    "TaxSchedule",
    "approved_credit_total",
    "check_credit_note_cap",
    "derive_status",
]
