"""
Module: billing_engines.reconciliation
Responsibility:
    Derive outstanding balances and payment statuses for invoices and
    debit notes, and decide whether a proposed credit note fits under the
    invoice's remaining claimable amount.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel (domain, exceptions, logging).

Invariants enforced:
    - outstanding = max(0, total - paid - credit); never negative.
    - Status is derived from amounts only; the backend's recorded status
      string is never consulted.
    - Idempotence: reconcile() on the same snapshot yields equal results.
    - Credit note cap: sum(approved totals) + new total <= invoice total.
      Tax rates always come from the invoice; callers cannot supply them.
    - Only APPROVED credit notes for the same invoice count towards the cap.

Failure modes:
    - propose_credit_note() and record_payment() never raise for business
      rejections; they return typed results carrying the exception
      instance (InvalidAmountError, CapExceededError, ...).
    - summarize() raises CurrencyMismatchError for mixed-currency input.

Usage:
    from billing_engines.reconciliation import ReconciliationEngine

    engine = ReconciliationEngine()
    result = engine.reconcile(invoice)
    proposal = engine.propose_credit_note(invoice, Money.of("500"), notes)
    if not proposal.is_accepted:
        print(proposal.error.remaining_amount)
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from billing_kernel.domain.ledger import (
    CreditNote,
    CreditNoteStatus,
    DerivedStatus,
    Invoice,
    LedgerDocument,
    Payment,
    check_credit_note_cap,
    claimed_credit_total,
)
from billing_kernel.domain.currency import CurrencyRegistry
from billing_kernel.domain.values import Currency, Money, sum_money
from billing_kernel.exceptions import (
    CreditNoteMismatchError,
    CurrencyMismatchError,
    InvalidAmountError,
    LedgerError,
)
from billing_kernel.logging_config import get_logger
from billing_engines.tax import CreditNoteTaxCalculator, TaxBreakdown
from billing_engines.tracer import traced_engine

logger = get_logger("engines.reconciliation")


# =============================================================================
# Result types
# =============================================================================


@dataclass(frozen=True)
class ReconciliationResult:
    """
    Derived balance view of one document snapshot.

    Guarantees:
        - outstanding_amount >= 0.
        - is_payable == (outstanding_amount > 0).
    """

    document_id: str
    outstanding_amount: Money
    derived_status: DerivedStatus
    is_payable: bool

    @property
    def is_settled(self) -> bool:
        return self.derived_status == DerivedStatus.PAID


@dataclass(frozen=True)
class CreditNoteProposal:
    """
    Result of ReconciliationEngine.propose_credit_note().

    Contract:
        Either carries a credit note OR an error, never both.
        ``remaining_after`` is the claimable amount left on the invoice
        once the proposed note is approved.
    """

    credit_note: CreditNote | None
    error: LedgerError | None = None
    remaining_after: Money | None = None
    breakdown: TaxBreakdown | None = None

    @classmethod
    def accepted(
        cls,
        credit_note: CreditNote,
        remaining_after: Money,
        breakdown: TaxBreakdown | None = None,
    ) -> CreditNoteProposal:
        return cls(
            credit_note=credit_note,
            remaining_after=remaining_after,
            breakdown=breakdown,
        )

    @classmethod
    def rejected(cls, error: LedgerError) -> CreditNoteProposal:
        return cls(credit_note=None, error=error)

    @property
    def is_accepted(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class LedgerUpdate:
    """
    Result of applying a payment or credit note to a document.

    Either ``document`` (the new snapshot) or ``error`` is set.
    """

    document: LedgerDocument | None
    error: LedgerError | None = None

    @classmethod
    def applied(cls, document: LedgerDocument) -> LedgerUpdate:
        return cls(document=document)

    @classmethod
    def rejected(cls, error: LedgerError) -> LedgerUpdate:
        return cls(document=None, error=error)

    @property
    def is_applied(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class LedgerSummary:
    """Totals shown above a list of documents."""

    currency: Currency
    document_count: int
    total_amount: Money
    paid_amount: Money
    credit_note_amount: Money
    outstanding_amount: Money
    status_counts: dict[DerivedStatus, int] = field(default_factory=dict)

    def count_for(self, status: DerivedStatus) -> int:
        return self.status_counts.get(status, 0)

    @property
    def payable_count(self) -> int:
        return self.count_for(DerivedStatus.UNPAID) + self.count_for(
            DerivedStatus.PARTIALLY_PAID
        )


# =============================================================================
# Engine
# =============================================================================


def _next_credit_note_id(invoice: Invoice, credit_notes: Iterable[CreditNote]) -> str:
    """
    ``<invoice id>-CN-<n>``, numbered after every note already issued
    against the invoice whatever its status, skipping ids in use.
    """
    taken = {note.id for note in credit_notes if note.invoice_id == invoice.id}
    sequence = len(taken) + 1
    while f"{invoice.id}-CN-{sequence}" in taken:
        sequence += 1
    return f"{invoice.id}-CN-{sequence}"


class ReconciliationEngine:
    """
    Pure reconciliation of billing documents.

    Stateless; a single instance may be shared between threads.
    """

    def __init__(self, tax_calculator: CreditNoteTaxCalculator | None = None):
        self._tax = tax_calculator or CreditNoteTaxCalculator()

    @traced_engine("reconciliation", "1.0", fingerprint_fields=("document",))
    def reconcile(self, document: LedgerDocument) -> ReconciliationResult:
        """Derive outstanding amount, status and payability of ``document``."""
        outstanding = document.outstanding_amount
        return ReconciliationResult(
            document_id=document.id,
            outstanding_amount=outstanding,
            derived_status=document.derived_status,
            is_payable=outstanding.is_positive,
        )

    def remaining_claimable(
        self,
        invoice: Invoice,
        existing_credit_notes: Iterable[CreditNote],
    ) -> Money:
        """
        Invoice total minus the credit already claimed: the approved notes
        supplied, or the invoice's recorded credit when that is larger.

        May be negative when the backend already holds more credit than
        the invoice total; any proposal against it is rejected.
        """
        return invoice.total_amount - claimed_credit_total(invoice, existing_credit_notes)

    @traced_engine(
        "credit_note_cap",
        "1.0",
        fingerprint_fields=("invoice", "base_amount", "existing_credit_notes"),
    )
    def propose_credit_note(
        self,
        invoice: LedgerDocument,
        base_amount: Money,
        existing_credit_notes: Sequence[CreditNote],
        credit_note_id: str | None = None,
        reason: str | None = None,
    ) -> CreditNoteProposal:
        """
        Propose a new credit note against ``invoice``.

        Preconditions:
            ``existing_credit_notes`` holds the notes already issued; notes
            for other invoices or not yet approved are ignored.

        Postconditions:
            Accepted proposals carry a PENDING credit note whose tax
            schedule is the invoice's, and the remaining claimable amount
            after it.  Rejections carry InvalidAmountError (base <= 0),
            CapExceededError, CurrencyMismatchError or
            CreditNoteMismatchError (not an invoice).
        """
        if not isinstance(base_amount, Money):
            base_amount = Money.of(base_amount, invoice.currency)

        if not isinstance(invoice, Invoice):
            return self._reject(invoice, CreditNoteMismatchError(
                document_id=invoice.id,
                credit_note_id=credit_note_id or "<new>",
                reason=f"credit notes apply to invoices only, not {invoice.kind.value}",
            ))
        if base_amount.currency != invoice.currency:
            return self._reject(invoice, CurrencyMismatchError(
                expected=invoice.currency.code, received=base_amount.currency.code
            ))
        if not base_amount.is_positive:
            return self._reject(
                invoice, InvalidAmountError(base_amount.amount, field="base_amount")
            )

        notes = list(existing_credit_notes)
        relevant = []
        for note in notes:
            if note.invoice_id != invoice.id or not note.is_approved:
                logger.debug("credit_note_ignored_for_cap", extra={
                    "invoice_id": invoice.id,
                    "credit_note_id": note.id,
                    "credit_note_invoice_id": note.invoice_id,
                    "credit_note_status": note.status.value,
                })
                continue
            relevant.append(note)

        note_id = credit_note_id or _next_credit_note_id(invoice, notes)
        credit_note = CreditNote.issue(
            invoice,
            credit_note_id=note_id,
            base_amount=base_amount,
            status=CreditNoteStatus.PENDING,
            reason=reason,
        )
        breakdown = self._tax.calculate(base=base_amount, schedule=invoice.tax_schedule)

        try:
            remaining_after = check_credit_note_cap(
                invoice, breakdown.gross, relevant, exclude_id=credit_note_id
            )
        except LedgerError as exc:
            return self._reject(invoice, exc)

        logger.info("credit_note_proposal_accepted", extra={
            "invoice_id": invoice.id,
            "credit_note_id": note_id,
            "base_amount": str(base_amount.amount),
            "credit_note_total": str(breakdown.gross.amount),
            "remaining_after": str(remaining_after.amount),
        })
        return CreditNoteProposal.accepted(credit_note, remaining_after, breakdown)

    def _reject(self, invoice: LedgerDocument, error: LedgerError) -> CreditNoteProposal:
        logger.info("credit_note_proposal_rejected", extra={
            "invoice_id": invoice.id,
            "error_code": error.code,
        })
        return CreditNoteProposal.rejected(error)

    @traced_engine("record_payment", "1.0", fingerprint_fields=("document", "amount"))
    def record_payment(
        self,
        document: LedgerDocument,
        amount: Payment | Money,
    ) -> LedgerUpdate:
        """Apply a confirmed payment, returning the new snapshot or the error."""
        try:
            return LedgerUpdate.applied(document.apply_payment(amount))
        except LedgerError as exc:
            logger.info("payment_rejected", extra={
                "document_id": document.id,
                "error_code": exc.code,
            })
            return LedgerUpdate.rejected(exc)

    def apply_credit_note(
        self,
        document: LedgerDocument,
        credit_note: CreditNote,
        existing_credit_notes: Iterable[CreditNote],
    ) -> LedgerUpdate:
        """Apply an approved credit note, returning the new snapshot or the error."""
        try:
            return LedgerUpdate.applied(
                document.apply_credit_note(credit_note, existing_credit_notes)
            )
        except LedgerError as exc:
            logger.info("credit_note_rejected", extra={
                "document_id": document.id,
                "credit_note_id": credit_note.id,
                "error_code": exc.code,
            })
            return LedgerUpdate.rejected(exc)

    @traced_engine("ledger_summary", "1.0")
    def summarize(
        self,
        documents: Iterable[LedgerDocument],
        currency: str | Currency = CurrencyRegistry.DEFAULT_CODE,
    ) -> LedgerSummary:
        """
        Sum totals across ``documents``.

        The currency of the first document wins; ``currency`` is used only
        for an empty input.

        Raises:
            CurrencyMismatchError: documents use different currencies.
        """
        docs = list(documents)
        if docs:
            currency = docs[0].currency
        elif isinstance(currency, str):
            currency = Currency(currency)

        counts = {status: 0 for status in DerivedStatus}
        for doc in docs:
            counts[doc.derived_status] += 1

        return LedgerSummary(
            currency=currency,
            document_count=len(docs),
            total_amount=sum_money((d.total_amount for d in docs), currency),
            paid_amount=sum_money((d.paid_amount for d in docs), currency),
            credit_note_amount=sum_money((d.credit_note_amount for d in docs), currency),
            outstanding_amount=sum_money((d.outstanding_amount for d in docs), currency),
            status_counts=counts,
        )

    def partition_by_status(
        self,
        documents: Iterable[LedgerDocument],
    ) -> dict[DerivedStatus, tuple[LedgerDocument, ...]]:
        """Group documents by derived status, keeping input order in each group."""
        groups: dict[DerivedStatus, list[LedgerDocument]] = {s: [] for s in DerivedStatus}
        for doc in documents:
            groups[doc.derived_status].append(doc)
        return {status: tuple(docs) for status, docs in groups.items()}
