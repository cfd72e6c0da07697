"""
Module: billing_kernel.selectors.ledger_selector
Responsibility: Read-only snapshot queries over the ledger replica -- the
    "current snapshot of an Invoice/DebitNote by id" that payment
    confirmation polls, plus the credit notes the cap is checked against.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Idempotent and side-effect free: repeated calls with the same replica
      state return equal domain objects, so polling is always safe to retry.
    - No stored balances are read: outstanding amount and status are
      derived by the returned domain objects.

Failure modes:
    - DocumentNotFoundError from get_document() when the id is unknown.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from billing_kernel.domain.ledger import (
    CreditNote,
    CreditNoteStatus,
    DocumentKind,
    LedgerDocument,
)
from billing_kernel.exceptions import DocumentNotFoundError
from billing_kernel.logging_config import get_logger
from billing_kernel.models.ledger import CreditNoteModel, LedgerDocumentModel
from billing_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.ledger")


class LedgerSnapshotSelector(BaseSelector[LedgerDocumentModel]):
    """
    Selector for ledger document snapshots.

    Contract:
        Returns frozen ``Invoice`` / ``DebitNote`` / ``CreditNote`` objects.
        Ordering is deterministic: documents by (due_date, id) with undated
        documents last; credit notes by id.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def get_document(self, document_id: str) -> LedgerDocument:
        """
        Get the current snapshot of one document.

        Raises:
            DocumentNotFoundError: if no row has this id.
        """
        row = self.session.get(LedgerDocumentModel, document_id)
        if row is None:
            logger.info("ledger_document_not_found", extra={"document_id": document_id})
            raise DocumentNotFoundError(document_id)
        return row.to_dto()

    def find_document_by_number(
        self, kind: DocumentKind, number: str
    ) -> LedgerDocument | None:
        """Look a document up by its display number (e.g. an invoice number)."""
        row = self.session.execute(
            select(LedgerDocumentModel).where(
                LedgerDocumentModel.kind == kind.value,
                LedgerDocumentModel.number == number,
            )
        ).scalar_one_or_none()
        return row.to_dto() if row is not None else None

    def find_documents(
        self,
        client_id: str | None = None,
        kind: DocumentKind | None = None,
    ) -> list[LedgerDocument]:
        """All documents, optionally restricted to one client and/or kind."""
        query = select(LedgerDocumentModel)
        if client_id is not None:
            query = query.where(LedgerDocumentModel.client_id == client_id)
        if kind is not None:
            query = query.where(LedgerDocumentModel.kind == kind.value)
        query = query.order_by(
            LedgerDocumentModel.due_date.is_(None),
            LedgerDocumentModel.due_date,
            LedgerDocumentModel.id,
        )
        rows = self.session.execute(query).scalars().all()
        return [row.to_dto() for row in rows]

    def credit_notes_for_invoice(
        self,
        invoice_id: str,
        status: CreditNoteStatus | None = None,
    ) -> list[CreditNote]:
        """Credit notes issued against ``invoice_id``, optionally by status."""
        query = select(CreditNoteModel).where(CreditNoteModel.invoice_id == invoice_id)
        if status is not None:
            query = query.where(CreditNoteModel.status == status.value)
        rows = self.session.execute(query.order_by(CreditNoteModel.id)).scalars().all()
        return [row.to_dto() for row in rows]

    def approved_credit_notes(self, invoice_id: str) -> list[CreditNote]:
        """The credit notes that count towards ``invoice_id``'s cap."""
        return self.credit_notes_for_invoice(invoice_id, CreditNoteStatus.APPROVED)
