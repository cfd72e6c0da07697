"""
Typed exception hierarchy for the billing kernel.

Every error carries a class-level ``code`` (machine readable, API safe) and
keeps its context as attributes instead of burying it in the message, so
callers branch on the type and render from the data.

Hierarchy:

    BillingKernelError (base)
    |
    +-- LedgerError
    |   +-- InvalidAmountError
    |   +-- CapExceededError
    |   +-- CreditNoteMismatchError
    |   +-- CurrencyMismatchError
    |
    +-- SnapshotError
    |   +-- DocumentNotFoundError
    |
    +-- ConfirmationError
        +-- InvalidConfirmationTransitionError

Codes:

Category     | Code                             | When raised
-------------|----------------------------------|------------------------------------------
Ledger       | INVALID_AMOUNT                   | Non-positive payment or credit amount
             | CREDIT_NOTE_CAP_EXCEEDED         | Credit notes would exceed invoice total
             | CREDIT_NOTE_MISMATCH             | Credit note applied to the wrong document
             | CURRENCY_MISMATCH                | Amounts in different currencies combined
-------------|----------------------------------|------------------------------------------
Snapshot     | DOCUMENT_NOT_FOUND               | Backend has no document with that id
-------------|----------------------------------|------------------------------------------
Confirmation | INVALID_CONFIRMATION_TRANSITION  | Gateway callback delivered twice / late

Handling pattern:

    result = engine.propose_credit_note(invoice=inv, base_amount=amt,
                                        existing_credit_notes=notes)
    if not result.is_accepted:
        err = result.error
        if isinstance(err, CapExceededError):
            show(f"{err.proposed_total} exceeds {err.remaining_amount}")

The Ledger Model raises these exceptions; the engine APIs wrap them in
result objects so that neither branch can be ignored silently.
"""

from __future__ import annotations

from decimal import Decimal


class BillingKernelError(Exception):
    """
    Base exception for all billing kernel errors.

    All subclasses must define a ``code`` class attribute.
    """

    code: str = "BILLING_KERNEL_ERROR"


# Ledger exceptions


class LedgerError(BillingKernelError):
    """Base exception for ledger document errors."""

    code: str = "LEDGER_ERROR"


class InvalidAmountError(LedgerError):
    """A payment or credit amount was zero or negative."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: Decimal, field: str = "amount"):
        self.amount = amount
        self.field = field
        super().__init__(f"{field} must be positive, got {amount}")


class CapExceededError(LedgerError):
    """
    A proposed credit note would push approved credit notes past the
    invoice total.
    """

    code: str = "CREDIT_NOTE_CAP_EXCEEDED"

    def __init__(
        self,
        invoice_id: str,
        proposed_total: Decimal,
        remaining_amount: Decimal,
        existing_total: Decimal,
        currency: str,
    ):
        self.invoice_id = invoice_id
        self.proposed_total = proposed_total
        self.remaining_amount = remaining_amount
        self.existing_total = existing_total
        self.currency = currency
        super().__init__(
            f"Credit note total {proposed_total} {currency} exceeds the "
            f"remaining invoice amount {remaining_amount} {currency} for "
            f"invoice {invoice_id} (credit notes already issued: "
            f"{existing_total} {currency})"
        )

    @property
    def shortfall(self) -> Decimal:
        """Amount by which the proposal overshoots the remaining amount."""
        return self.proposed_total - self.remaining_amount


class CreditNoteMismatchError(LedgerError):
    """Credit note does not belong to the document it is applied to."""

    code: str = "CREDIT_NOTE_MISMATCH"

    def __init__(self, document_id: str, credit_note_id: str, reason: str):
        self.document_id = document_id
        self.credit_note_id = credit_note_id
        self.reason = reason
        super().__init__(
            f"Credit note {credit_note_id} cannot be applied to "
            f"{document_id}: {reason}"
        )


class CurrencyMismatchError(LedgerError):
    """Amounts in different currencies were combined."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, expected: str, received: str):
        self.expected = expected
        self.received = received
        super().__init__(f"Currency mismatch: expected {expected}, got {received}")


# Snapshot exceptions


class SnapshotError(BillingKernelError):
    """Base exception for ledger snapshot reads."""

    code: str = "SNAPSHOT_ERROR"


class DocumentNotFoundError(SnapshotError):
    """The backend has no document with the given id."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Ledger document not found: {document_id}")


# Confirmation exceptions


class ConfirmationError(BillingKernelError):
    """Base exception for payment confirmation errors."""

    code: str = "CONFIRMATION_ERROR"


class InvalidConfirmationTransitionError(ConfirmationError):
    """A gateway callback arrived for a confirmation that already left IDLE."""

    code: str = "INVALID_CONFIRMATION_TRANSITION"

    def __init__(self, document_id: str, from_state: str, event: str):
        self.document_id = document_id
        self.from_state = from_state
        self.event = event
        super().__init__(
            f"Cannot apply '{event}' to confirmation for {document_id} "
            f"in state {from_state}"
        )
