"""
Module: billing_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for
    billing_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel.  MUST NOT import billing_services.

Invariants enforced:
    - Purity: engines never call ``datetime.now()`` or ``date.today()``;
      reference dates are explicit parameters.
    - Decimal-only arithmetic for all monetary amounts.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from billing_engines.reconciliation import ReconciliationEngine
    from billing_engines.due_window import DueWindow, classify
    from billing_engines.tax import CreditNoteTaxCalculator
"""

from billing_engines.due_window import (
    STANDARD_WINDOWS,
    DueWindow,
    DueWindowKind,
    classify,
    filter_documents,
    partition,
)
from billing_engines.reconciliation import (
    CreditNoteProposal,
    LedgerSummary,
    LedgerUpdate,
    ReconciliationEngine,
    ReconciliationResult,
)
from billing_engines.tax import CreditNoteTaxCalculator, TaxBreakdown, TaxLine
from billing_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    # Due windows
    "DueWindow",
    "DueWindowKind",
    "STANDARD_WINDOWS",
    "classify",
    "filter_documents",
    "partition",
    # Reconciliation
    "ReconciliationEngine",
    "ReconciliationResult",
    "CreditNoteProposal",
    "LedgerUpdate",
    "LedgerSummary",
    # Tax
    "CreditNoteTaxCalculator",
    "TaxBreakdown",
    "TaxLine",
    # Tracing
    "traced_engine",
    "compute_input_fingerprint",
]
