"""
Ledger Replica ORM Models (``billing_kernel.models.ledger``).

Responsibility
--------------
SQLAlchemy models for the local replica of the billing backend's invoices,
debit notes and credit notes.  Each model converts to the frozen domain
objects in ``billing_kernel.domain.ledger`` via ``to_dto()``.

Architecture position
---------------------
**Kernel > Models** -- persistence.  Imports from ``billing_kernel.db.base``
and the pure domain.  Outstanding balance and status are NOT columns: they
are derived by the domain objects on every read.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import Base, SyncedBase
from billing_kernel.domain.ledger import (
    CreditNote,
    CreditNoteStatus,
    DebitNote,
    DocumentKind,
    Invoice,
    LedgerDocument,
    TaxComponent,
    TaxSchedule,
)
from billing_kernel.domain.values import Money


def _schedule_from(rows) -> TaxSchedule:
    ordered = sorted(rows, key=lambda r: r.position)
    return TaxSchedule(tuple(TaxComponent(r.name, r.rate_percent) for r in ordered))


def _tax_rows(schedule: TaxSchedule, owner_id: str, row_cls):
    return [
        row_cls(
            id=f"{owner_id}:{position}",
            position=position,
            name=component.name,
            rate_percent=component.rate_percent,
        )
        for position, component in enumerate(schedule.components)
    ]


# ---------------------------------------------------------------------------
# 1. LedgerDocumentModel
# ---------------------------------------------------------------------------


class LedgerDocumentModel(SyncedBase):
    """
    Replica row for an invoice or debit note.

    Guarantees:
        - kind is one of the DocumentKind values.
        - credit_note_amount is zero for debit notes (enforced by DebitNote).
        - recorded_status is the backend's string, kept for audit only.
    """

    __tablename__ = "billing_documents"

    __table_args__ = (
        UniqueConstraint("kind", "number", name="uq_billing_documents_kind_number"),
        Index("idx_billing_documents_client_id", "client_id"),
        Index("idx_billing_documents_due_date", "due_date"),
    )

    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    client_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    credit_note_amount: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )
    due_date: Mapped[date | None] = mapped_column(nullable=True)
    recorded_status: Mapped[str | None] = mapped_column(String(32), nullable=True)

    taxes: Mapped[list["DocumentTaxModel"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dto(self) -> LedgerDocument:
        """Convert ORM row to an Invoice or DebitNote."""
        doc_cls = Invoice if DocumentKind(self.kind) == DocumentKind.INVOICE else DebitNote
        return doc_cls(
            id=self.id,
            total_amount=Money.of(self.total_amount, self.currency),
            paid_amount=Money.of(self.paid_amount, self.currency),
            credit_note_amount=Money.of(self.credit_note_amount, self.currency),
            due_date=self.due_date,
            tax_schedule=_schedule_from(self.taxes),
            client_id=self.client_id,
            number=self.number,
            recorded_status=self.recorded_status,
        )

    @classmethod
    def from_dto(cls, dto: LedgerDocument) -> "LedgerDocumentModel":
        """Create ORM row from a domain document (replica sync and tests)."""
        return cls(
            id=dto.id,
            kind=dto.kind.value,
            number=dto.number,
            client_id=dto.client_id,
            currency=dto.currency.code,
            total_amount=dto.total_amount.amount,
            paid_amount=dto.paid_amount.amount,
            credit_note_amount=dto.credit_note_amount.amount,
            due_date=dto.due_date,
            recorded_status=dto.recorded_status,
            taxes=_tax_rows(dto.tax_schedule, dto.id, DocumentTaxModel),
        )

    def __repr__(self) -> str:
        return f"<LedgerDocumentModel {self.kind} {self.number or self.id}>"


class DocumentTaxModel(Base):
    """One tax component of a document's schedule, ordered by position."""

    __tablename__ = "billing_document_taxes"

    __table_args__ = (
        UniqueConstraint("document_id", "name", name="uq_billing_document_taxes_name"),
    )

    document_id: Mapped[str] = mapped_column(
        ForeignKey("billing_documents.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(20), nullable=False)
    rate_percent: Mapped[Decimal] = mapped_column(nullable=False)

    document: Mapped[LedgerDocumentModel] = relationship(back_populates="taxes")


# ---------------------------------------------------------------------------
# 2. CreditNoteModel
# ---------------------------------------------------------------------------


class CreditNoteModel(SyncedBase):
    """
    Replica row for a credit note.

    The tax rows are the copy taken from the invoice at issue time.
    """

    __tablename__ = "billing_credit_notes"

    __table_args__ = (
        Index("idx_billing_credit_notes_invoice_id", "invoice_id"),
        Index("idx_billing_credit_notes_status", "status"),
    )

    invoice_id: Mapped[str] = mapped_column(
        ForeignKey("billing_documents.id"), nullable=False
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")
    base_amount: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CreditNoteStatus.PENDING.value
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    taxes: Mapped[list["CreditNoteTaxModel"]] = relationship(
        back_populates="credit_note",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dto(self) -> CreditNote:
        return CreditNote(
            id=self.id,
            invoice_id=self.invoice_id,
            base_amount=Money.of(self.base_amount, self.currency),
            tax_schedule=_schedule_from(self.taxes),
            status=CreditNoteStatus(self.status),
            reason=self.reason,
        )

    @classmethod
    def from_dto(cls, dto: CreditNote) -> "CreditNoteModel":
        return cls(
            id=dto.id,
            invoice_id=dto.invoice_id,
            currency=dto.currency.code,
            base_amount=dto.base_amount.amount,
            status=dto.status.value,
            reason=dto.reason,
            taxes=_tax_rows(dto.tax_schedule, dto.id, CreditNoteTaxModel),
        )

    def __repr__(self) -> str:
        return f"<CreditNoteModel {self.id} -> {self.invoice_id} ({self.status})>"


class CreditNoteTaxModel(Base):
    """One tax component copied onto a credit note."""

    __tablename__ = "billing_credit_note_taxes"

    __table_args__ = (
        UniqueConstraint(
            "credit_note_id", "name", name="uq_billing_credit_note_taxes_name"
        ),
    )

    credit_note_id: Mapped[str] = mapped_column(
        ForeignKey("billing_credit_notes.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(20), nullable=False)
    rate_percent: Mapped[Decimal] = mapped_column(nullable=False)

    credit_note: Mapped[CreditNoteModel] = relationship(back_populates="taxes")
