"""ORM models for the ledger replica."""

from billing_kernel.models.ledger import (
    CreditNoteModel,
    CreditNoteTaxModel,
    DocumentTaxModel,
    LedgerDocumentModel,
)

__all__ = [
    "CreditNoteModel",
    "CreditNoteTaxModel",
    "DocumentTaxModel",
    "LedgerDocumentModel",
]
