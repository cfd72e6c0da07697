"""
Ledger -- Invoice, Debit Note, Credit Note and Payment domain objects.

Responsibility:
    Holds the billing documents and the derivation rules every screen relies
    on: outstanding balance, derived status, and the credit-note cap.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - outstanding_amount = max(0, total - paid - credit_note_amount); it is
      always derived and never stored.
    - derived_status is a pure function of (paid_amount, outstanding_amount);
      the backend's recorded status string is carried for audit only.
    - Credit note cap: approved credit note totals (tax inclusive) for an
      invoice never exceed the invoice total.  Existing credit is the larger
      of the approved notes supplied and the invoice's credit_note_amount.
    - Credit notes copy the invoice's tax schedule when issued.
    - Documents are immutable; ``apply_payment`` and ``apply_credit_note``
      return a new document with a larger paid / credited amount.

Failure modes:
    - InvalidAmountError for non-positive payment or credit amounts.
    - CapExceededError when the cap would be violated.
    - CreditNoteMismatchError when a credit note is applied to a document
      it does not belong to, to a debit note, or before approval.
    - CurrencyMismatchError when amounts use different currencies.
    - ValueError for malformed constructor input (negative totals, bad rates).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import ClassVar, Iterable

from billing_kernel.exceptions import (
    CapExceededError,
    CreditNoteMismatchError,
    CurrencyMismatchError,
    InvalidAmountError,
    LedgerError,
)
from billing_kernel.domain.values import Money, sum_money
from billing_kernel.logging_config import get_logger

logger = get_logger("domain.ledger")

_HUNDRED = Decimal("100")


class DocumentKind(str, Enum):
    """Kind of ledger document a balance is tracked for."""

    INVOICE = "invoice"
    DEBIT_NOTE = "debit_note"


class DerivedStatus(str, Enum):
    """Payment status derived from amounts, never read from storage."""

    PAID = "paid"
    PARTIALLY_PAID = "partially_paid"
    UNPAID = "unpaid"


class CreditNoteStatus(str, Enum):
    """Approval state of a credit note."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def derive_status(paid_amount: Money, outstanding_amount: Money) -> DerivedStatus:
    """
    Derive the payment status of a document.

    outstanding == 0            -> PAID
    paid > 0 and outstanding > 0 -> PARTIALLY_PAID
    otherwise                   -> UNPAID
    """
    if outstanding_amount.is_zero:
        return DerivedStatus.PAID
    if paid_amount.is_positive and outstanding_amount.is_positive:
        return DerivedStatus.PARTIALLY_PAID
    return DerivedStatus.UNPAID


def _to_date(value: date | datetime | None) -> date | None:
    # datetime is a subclass of date, so check it first
    if isinstance(value, datetime):
        return value.date()
    return value


# =========================================================================
# Tax schedule
# =========================================================================


@dataclass(frozen=True)
class TaxComponent:
    """
    One named tax rate, e.g. CGST at 9 percent.

    ``rate_percent`` is a percentage (9 means 9%), applied to a base amount.
    """

    name: str
    rate_percent: Decimal

    def __post_init__(self) -> None:
        name = self.name.strip().upper() if self.name else ""
        if not name:
            raise ValueError("Tax component name is required")
        object.__setattr__(self, "name", name)

        if not isinstance(self.rate_percent, Decimal):
            try:
                object.__setattr__(self, "rate_percent", Decimal(str(self.rate_percent)))
            except (InvalidOperation, ValueError) as e:
                raise ValueError(f"Invalid tax rate: {self.rate_percent}") from e
        if not self.rate_percent.is_finite() or self.rate_percent < 0:
            raise ValueError(f"Tax rate cannot be negative: {self.rate_percent}")

    def tax_on(self, base: Money) -> Money:
        """Unrounded tax on ``base``."""
        return base * (self.rate_percent / _HUNDRED)


@dataclass(frozen=True)
class TaxSchedule:
    """
    Ordered set of tax components carried by an invoice.

    Guarantees:
        - Component names are unique.
        - An empty schedule is zero-rated (gross == base).
    """

    components: tuple[TaxComponent, ...] = ()

    def __post_init__(self) -> None:
        components = tuple(self.components)
        names = [c.name for c in components]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate tax component names: {names}")
        object.__setattr__(self, "components", components)

    @classmethod
    def of(cls, **rates: Decimal | str | int) -> TaxSchedule:
        """Build a schedule from keyword rates: ``TaxSchedule.of(CGST=9, SGST=9)``."""
        return cls(tuple(TaxComponent(name, Decimal(str(rate))) for name, rate in rates.items()))

    @property
    def total_rate_percent(self) -> Decimal:
        return sum((c.rate_percent for c in self.components), Decimal("0"))

    @property
    def is_zero_rated(self) -> bool:
        return self.total_rate_percent == 0

    def rate_for(self, name: str) -> Decimal:
        """Rate for a component name; absent components are zero-rated."""
        wanted = name.strip().upper()
        for component in self.components:
            if component.name == wanted:
                return component.rate_percent
        return Decimal("0")

    def tax_amounts(self, base: Money) -> tuple[tuple[str, Money], ...]:
        """Unrounded (name, tax) pairs in schedule order."""
        return tuple((c.name, c.tax_on(base)) for c in self.components)

    def gross_for(self, base: Money) -> Money:
        """``base + sum(base * rate_i)``, rounded once to currency precision."""
        total = base
        for _, tax in self.tax_amounts(base):
            total = total + tax
        return total.round()


# =========================================================================
# Credit notes and payments
# =========================================================================


@dataclass(frozen=True)
class CreditNote:
    """
    A credit against exactly one invoice.

    The tax schedule is a copy of the invoice's schedule at issue time; it is
    never re-looked-up. ``total_amount`` is derived from base and schedule.
    """

    id: str
    invoice_id: str
    base_amount: Money
    tax_schedule: TaxSchedule = field(default_factory=TaxSchedule)
    status: CreditNoteStatus = CreditNoteStatus.APPROVED
    reason: str | None = None

    def __post_init__(self) -> None:
        if not self.base_amount.is_positive:
            raise InvalidAmountError(self.base_amount.amount, field="base_amount")
        if isinstance(self.status, str) and not isinstance(self.status, CreditNoteStatus):
            object.__setattr__(self, "status", CreditNoteStatus(self.status))

    @classmethod
    def issue(
        cls,
        invoice: Invoice,
        credit_note_id: str,
        base_amount: Money,
        status: CreditNoteStatus = CreditNoteStatus.PENDING,
        reason: str | None = None,
    ) -> CreditNote:
        """Create a credit note for ``invoice``, inheriting its tax rates."""
        return cls(
            id=credit_note_id,
            invoice_id=invoice.id,
            base_amount=base_amount,
            tax_schedule=invoice.tax_schedule,
            status=status,
            reason=reason,
        )

    @property
    def currency(self):
        return self.base_amount.currency

    @property
    def total_amount(self) -> Money:
        return self.tax_schedule.gross_for(self.base_amount)

    @property
    def tax_amount(self) -> Money:
        return self.total_amount - self.base_amount

    @property
    def is_approved(self) -> bool:
        return self.status == CreditNoteStatus.APPROVED

    def approve(self) -> CreditNote:
        return replace(self, status=CreditNoteStatus.APPROVED)


@dataclass(frozen=True)
class Payment:
    """A confirmed payment against an invoice or debit note."""

    document_id: str
    amount: Money
    reference: str | None = None
    received_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.amount.is_positive:
            raise InvalidAmountError(self.amount.amount, field="payment_amount")


def approved_credit_total(
    invoice_id: str,
    credit_notes: Iterable[CreditNote],
    currency,
    exclude_id: str | None = None,
) -> Money:
    """Sum of approved credit note totals for ``invoice_id``."""
    counted = [
        cn.total_amount
        for cn in credit_notes
        if cn.invoice_id == invoice_id and cn.is_approved and cn.id != exclude_id
    ]
    return sum_money(counted, currency)


def claimed_credit_total(
    invoice: Invoice,
    credit_notes: Iterable[CreditNote],
    exclude_id: str | None = None,
) -> Money:
    """
    Credit already claimed against ``invoice``.

    The larger of the approved notes supplied and the credit the invoice
    snapshot already records, so an incomplete note list cannot reopen
    room under the cap.
    """
    approved = approved_credit_total(
        invoice.id, credit_notes, invoice.currency, exclude_id=exclude_id
    )
    return max(approved, invoice.credit_note_amount)


def check_credit_note_cap(
    invoice: Invoice,
    proposed_total: Money,
    existing_credit_notes: Iterable[CreditNote],
    exclude_id: str | None = None,
) -> Money:
    """
    Enforce the credit note cap for ``invoice``.

    Postconditions:
        Returns the remaining claimable amount after ``proposed_total``.

    Raises:
        CapExceededError: if existing + proposed > invoice total.
    """
    existing = claimed_credit_total(invoice, existing_credit_notes, exclude_id=exclude_id)
    remaining = invoice.total_amount - existing
    if proposed_total > remaining:
        logger.info("credit_note_cap_exceeded", extra={
            "invoice_id": invoice.id,
            "proposed_total": str(proposed_total.amount),
            "remaining_amount": str(remaining.amount),
            "existing_total": str(existing.amount),
        })
        raise CapExceededError(
            invoice_id=invoice.id,
            proposed_total=proposed_total.amount,
            remaining_amount=remaining.amount,
            existing_total=existing.amount,
            currency=invoice.currency.code,
        )
    return remaining - proposed_total


# =========================================================================
# Ledger documents
# =========================================================================


@dataclass(frozen=True)
class LedgerDocument:
    """
    Snapshot of an Invoice or Debit Note as the billing backend reports it.

    Contract:
        ``paid_amount`` and ``credit_note_amount`` default to zero in the
        currency of ``total_amount``. ``due_date`` may be absent.

    Guarantees:
        - All amounts are non-negative and share one currency.
        - ``outstanding_amount`` and ``derived_status`` are derived on every
          access; ``recorded_status`` is never consulted.
    """

    kind: ClassVar[DocumentKind]

    id: str
    total_amount: Money
    paid_amount: Money | None = None
    credit_note_amount: Money | None = None
    due_date: date | None = None
    tax_schedule: TaxSchedule = field(default_factory=TaxSchedule)
    client_id: str | None = None
    number: str | None = None
    recorded_status: str | None = None

    def __post_init__(self) -> None:
        currency = self.total_amount.currency
        if self.paid_amount is None:
            object.__setattr__(self, "paid_amount", Money.zero(currency))
        if self.credit_note_amount is None:
            object.__setattr__(self, "credit_note_amount", Money.zero(currency))
        object.__setattr__(self, "due_date", _to_date(self.due_date))

        for name in ("total_amount", "paid_amount", "credit_note_amount"):
            value: Money = getattr(self, name)
            if value.currency != currency:
                raise CurrencyMismatchError(
                    expected=currency.code, received=value.currency.code
                )
            if value.is_negative:
                raise ValueError(f"{name} cannot be negative: {value}")

    @property
    def currency(self):
        return self.total_amount.currency

    @property
    def outstanding_amount(self) -> Money:
        remaining = self.total_amount - self.paid_amount - self.credit_note_amount
        return remaining.clamp_non_negative()

    @property
    def derived_status(self) -> DerivedStatus:
        return derive_status(self.paid_amount, self.outstanding_amount)

    @property
    def is_payable(self) -> bool:
        return self.outstanding_amount.is_positive

    def is_overdue(self, as_of: date | datetime) -> bool:
        """Past due (date-only comparison) with a balance still outstanding."""
        if self.due_date is None:
            return False
        return self.due_date < _to_date(as_of) and self.outstanding_amount.is_positive

    def apply_payment(self, payment: Payment | Money | Decimal | str | int) -> LedgerDocument:
        """
        Record a confirmed payment.

        Postconditions:
            Returns a new document with ``paid_amount`` increased by the
            payment. Overpayment is allowed; outstanding clamps at zero.

        Raises:
            InvalidAmountError: if the amount is zero or negative.
            CurrencyMismatchError: if the payment currency differs.
            LedgerError: if a Payment for another document is supplied.
        """
        if isinstance(payment, Payment):
            if payment.document_id != self.id:
                raise LedgerError(
                    f"Payment for {payment.document_id} cannot be applied to {self.id}"
                )
            amount = payment.amount
        elif isinstance(payment, Money):
            amount = payment
        else:
            amount = Money.of(payment, self.currency)

        if not amount.is_positive:
            raise InvalidAmountError(amount.amount, field="payment_amount")

        updated = replace(self, paid_amount=self.paid_amount + amount)
        logger.debug("payment_applied", extra={
            "document_id": self.id,
            "document_kind": self.kind.value,
            "amount": str(amount.amount),
            "paid_amount": str(updated.paid_amount.amount),
            "outstanding_amount": str(updated.outstanding_amount.amount),
        })
        return updated

    def apply_credit_note(
        self,
        credit_note: CreditNote,
        existing_credit_notes: Iterable[CreditNote],
    ) -> LedgerDocument:
        raise CreditNoteMismatchError(
            document_id=self.id,
            credit_note_id=credit_note.id,
            reason=f"credit notes apply to invoices only, not {self.kind.value}",
        )


@dataclass(frozen=True)
class Invoice(LedgerDocument):
    """An issued invoice; the only document credit notes may reduce."""

    kind: ClassVar[DocumentKind] = DocumentKind.INVOICE

    def apply_credit_note(
        self,
        credit_note: CreditNote,
        existing_credit_notes: Iterable[CreditNote],
    ) -> Invoice:
        """
        Record an approved credit note against this invoice.

        Preconditions:
            ``existing_credit_notes`` is the full set of credit notes already
            issued against this invoice (only approved ones are counted).

        Raises:
            CreditNoteMismatchError: wrong invoice or note not approved.
            CapExceededError: the cap would be violated.
        """
        if credit_note.invoice_id != self.id:
            raise CreditNoteMismatchError(
                document_id=self.id,
                credit_note_id=credit_note.id,
                reason=f"credit note references invoice {credit_note.invoice_id}",
            )
        if not credit_note.is_approved:
            raise CreditNoteMismatchError(
                document_id=self.id,
                credit_note_id=credit_note.id,
                reason=f"credit note is {credit_note.status.value}, not approved",
            )

        total = credit_note.total_amount
        check_credit_note_cap(
            self, total, existing_credit_notes, exclude_id=credit_note.id
        )

        updated = replace(self, credit_note_amount=self.credit_note_amount + total)
        logger.debug("credit_note_applied", extra={
            "document_id": self.id,
            "credit_note_id": credit_note.id,
            "credit_note_total": str(total.amount),
            "credit_note_amount": str(updated.credit_note_amount.amount),
        })
        return updated


@dataclass(frozen=True)
class DebitNote(LedgerDocument):
    """A debit note raised against a client; never credited."""

    kind: ClassVar[DocumentKind] = DocumentKind.DEBIT_NOTE

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.credit_note_amount.is_zero:
            raise ValueError(
                f"Debit note {self.id} cannot carry a credit note amount"
            )
