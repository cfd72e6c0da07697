"""
BillingService -- Caller-facing API for billing reconciliation.

Contract:
    Bundles the pure engines with configuration, a snapshot source and a
    clock.  Every call is a thin delegation; the only state held is what
    was injected at construction.

Architecture: billing_services.  The one place that reads the clock:
    engines receive ``as_of`` explicitly, defaulted here from the
    injected Clock.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime

from billing_config.schema import BillingConfig
from billing_engines.due_window import DueWindow, classify, filter_documents
from billing_engines.reconciliation import (
    CreditNoteProposal,
    LedgerSummary,
    LedgerUpdate,
    ReconciliationEngine,
    ReconciliationResult,
)
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.ledger import (
    CreditNote,
    DerivedStatus,
    Invoice,
    LedgerDocument,
    Payment,
)
from billing_kernel.domain.values import Money
from billing_kernel.logging_config import get_logger
from billing_services.payment_confirmation import (
    ConfirmationHandle,
    OutcomeCallback,
    PaymentConfirmationCoordinator,
)
from billing_services.snapshot_sources import SnapshotSource

logger = get_logger("services.billing")


@dataclass(frozen=True)
class DocumentView:
    """
    What a document list screen shows for one due-window filter: the
    matching documents, their summary panel and the status tabs.
    """

    window: DueWindow
    as_of: date
    documents: tuple[LedgerDocument, ...]
    summary: LedgerSummary
    by_status: dict[DerivedStatus, tuple[LedgerDocument, ...]]

    @property
    def payable(self) -> tuple[LedgerDocument, ...]:
        return tuple(d for d in self.documents if d.is_payable)


class BillingService:
    """
    Facade over reconciliation, due-window classification and payment
    confirmation.

    Non-goals:
        - Does NOT write to the billing backend.
        - Does NOT render anything; DocumentView is data only.
    """

    def __init__(
        self,
        config: BillingConfig,
        snapshot_source: SnapshotSource,
        clock: Clock | None = None,
        engine: ReconciliationEngine | None = None,
        coordinator: PaymentConfirmationCoordinator | None = None,
    ):
        self._config = config
        self._snapshot_source = snapshot_source
        self._clock = clock or SystemClock()
        self._engine = engine or ReconciliationEngine()
        self._coordinator = coordinator or PaymentConfirmationCoordinator(
            snapshot_source,
            policy=config.confirmation,
            engine=self._engine,
        )

    @property
    def config(self) -> BillingConfig:
        return self._config

    @property
    def windows(self) -> tuple[DueWindow, ...]:
        return self._config.windows()

    def reconcile(self, document: LedgerDocument) -> ReconciliationResult:
        return self._engine.reconcile(document)

    def reconcile_by_id(self, document_id: str) -> ReconciliationResult:
        """Reconcile the current snapshot of ``document_id``."""
        return self._engine.reconcile(self._snapshot_source.fetch(document_id))

    def propose_credit_note(
        self,
        invoice: Invoice,
        base_amount: Money,
        existing_credit_notes: Sequence[CreditNote],
        credit_note_id: str | None = None,
        reason: str | None = None,
    ) -> CreditNoteProposal:
        return self._engine.propose_credit_note(
            invoice,
            base_amount,
            existing_credit_notes,
            credit_note_id=credit_note_id,
            reason=reason,
        )

    def remaining_claimable(
        self,
        invoice: Invoice,
        existing_credit_notes: Sequence[CreditNote],
    ) -> Money:
        return self._engine.remaining_claimable(invoice, existing_credit_notes)

    def record_payment(
        self,
        document: LedgerDocument,
        amount: Payment | Money,
    ) -> LedgerUpdate:
        return self._engine.record_payment(document, amount)

    def classify(
        self,
        document: LedgerDocument,
        as_of: date | datetime | None = None,
        window: DueWindow | str = DueWindow.all(),
    ) -> bool:
        """True if ``document`` is in ``window``; ``as_of`` defaults to today."""
        return classify(document, self._as_of(as_of), self._window(window))

    def confirm_payment(
        self,
        document_id: str,
        on_outcome: OutcomeCallback | None = None,
    ) -> ConfirmationHandle:
        return self._coordinator.confirm_payment(document_id, on_outcome)

    def document_view(
        self,
        documents: Iterable[LedgerDocument],
        window: DueWindow | str = DueWindow.all(),
        as_of: date | datetime | None = None,
    ) -> DocumentView:
        """Filter by due window, then summarize and split into status tabs."""
        window = self._window(window)
        as_of = self._as_of(as_of)
        selected = filter_documents(documents, as_of, window)
        view = DocumentView(
            window=window,
            as_of=as_of,
            documents=selected,
            summary=self._engine.summarize(selected, currency=self._config.currency),
            by_status=self._engine.partition_by_status(selected),
        )
        logger.info("document_view_built", extra={
            "window": str(window),
            "as_of": as_of,
            "document_count": view.summary.document_count,
            "outstanding_amount": view.summary.outstanding_amount.amount,
        })
        return view

    def _as_of(self, as_of: date | datetime | None) -> date:
        if as_of is None:
            return self._clock.today()
        if isinstance(as_of, datetime):
            return as_of.date()
        return as_of

    @staticmethod
    def _window(window: DueWindow | str) -> DueWindow:
        if isinstance(window, DueWindow):
            return window
        return DueWindow.parse(window)
