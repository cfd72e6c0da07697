"""
Snapshot sources -- where payment confirmation reads documents from.

Contract:
    A snapshot source returns the current state of one invoice or debit
    note by id.  Reads are idempotent and side-effect free, so the
    confirmation coordinator may repeat them as often as it polls.

Architecture: billing_services.  SelectorSnapshotSource reads the local
    ledger replica through ``LedgerSnapshotSelector``;
    StaticSnapshotSource serves a fixed set of documents (fixtures,
    demos, callers that already hold the snapshot).
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from typing import Callable, Protocol, runtime_checkable

from sqlalchemy.orm import Session

from billing_kernel.domain.ledger import LedgerDocument
from billing_kernel.exceptions import DocumentNotFoundError
from billing_kernel.logging_config import get_logger
from billing_kernel.selectors.ledger_selector import LedgerSnapshotSelector

logger = get_logger("services.snapshot_sources")


@runtime_checkable
class SnapshotSource(Protocol):
    """Read access to the current snapshot of a ledger document."""

    def fetch(self, document_id: str) -> LedgerDocument:
        """Raises DocumentNotFoundError if the id is unknown."""
        ...


class SelectorSnapshotSource:
    """
    Snapshot source backed by the SQL ledger replica.

    Opens a fresh session per fetch and always closes it, so each poll
    sees the latest committed state and no session is shared between
    threads.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def fetch(self, document_id: str) -> LedgerDocument:
        session = self._session_factory()
        try:
            return LedgerSnapshotSelector(session).get_document(document_id)
        finally:
            session.close()


class StaticSnapshotSource:
    """
    In-memory snapshot source.

    ``update()`` replaces a document, which is how tests simulate the
    backend catching up with a payment.
    """

    def __init__(self, documents: Iterable[LedgerDocument] = ()):
        self._documents: dict[str, LedgerDocument] = {d.id: d for d in documents}
        self._lock = threading.Lock()

    def fetch(self, document_id: str) -> LedgerDocument:
        with self._lock:
            document = self._documents.get(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    def update(self, document: LedgerDocument) -> None:
        with self._lock:
            self._documents[document.id] = document
        logger.debug("static_snapshot_updated", extra={"document_id": document.id})
