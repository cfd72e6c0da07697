"""
Module: billing_engines.due_window
Responsibility:
    Classify invoices and debit notes into due-date windows: everything,
    overdue, or due within the next N days.  Backs the list screens'
    due filter ("all", "overdue", "7", "15", ...).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    The reference date is always a parameter; engines never read a clock.

Invariants enforced:
    - Comparisons are on calendar dates; datetimes are truncated.
    - A document without a due date is never overdue and is included in
      every next-N-days window.
    - Overdue additionally requires an outstanding balance.
    - Next-N-days has no lower bound: already overdue documents match too.

Failure modes:
    - ValueError for a negative day count or an unknown filter token.

Usage:
    from billing_engines.due_window import DueWindow, classify

    classify(invoice, date(2024, 3, 1), DueWindow.next_n_days(15))
    DueWindow.parse("overdue")
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum

from billing_kernel.domain.ledger import LedgerDocument
from billing_kernel.logging_config import get_logger
from billing_engines.tracer import traced_engine

logger = get_logger("engines.due_window")


class DueWindowKind(str, Enum):
    ALL = "all"
    OVERDUE = "overdue"
    NEXT_N_DAYS = "next_n_days"


@dataclass(frozen=True)
class DueWindow:
    """
    A due-date filter.

    Contract:
        ``days`` is set only for NEXT_N_DAYS and is >= 0.
        ``str(window)`` is the filter token that ``parse`` accepts.
    """

    kind: DueWindowKind
    days: int | None = None

    def __post_init__(self) -> None:
        if self.kind == DueWindowKind.NEXT_N_DAYS:
            if self.days is None or self.days < 0:
                raise ValueError(f"Day count must be >= 0, got {self.days}")
        elif self.days is not None:
            raise ValueError(f"{self.kind.value} window takes no day count")

    @classmethod
    def all(cls) -> DueWindow:
        return cls(DueWindowKind.ALL)

    @classmethod
    def overdue(cls) -> DueWindow:
        return cls(DueWindowKind.OVERDUE)

    @classmethod
    def next_n_days(cls, days: int) -> DueWindow:
        return cls(DueWindowKind.NEXT_N_DAYS, days)

    @classmethod
    def parse(cls, token: str | int) -> DueWindow:
        """
        Parse a filter token: ``"all"``, ``"overdue"`` or a day count.

        Raises:
            ValueError: unknown token or negative day count.
        """
        if isinstance(token, int):
            return cls.next_n_days(token)
        normalized = str(token).strip().lower()
        if normalized == DueWindowKind.ALL.value:
            return cls.all()
        if normalized == DueWindowKind.OVERDUE.value:
            return cls.overdue()
        try:
            days = int(normalized)
        except ValueError:
            raise ValueError(f"Unknown due window: {token!r}") from None
        return cls.next_n_days(days)

    def contains(self, document: LedgerDocument, as_of: date | datetime) -> bool:
        return classify(document, as_of, self)

    @property
    def label(self) -> str:
        if self.kind == DueWindowKind.ALL:
            return "All"
        if self.kind == DueWindowKind.OVERDUE:
            return "Overdue"
        return f"Next {self.days} days"

    def __str__(self) -> str:
        if self.kind == DueWindowKind.NEXT_N_DAYS:
            return str(self.days)
        return self.kind.value


# Filters offered by the invoice and debit note list screens
STANDARD_WINDOWS: tuple[DueWindow, ...] = (
    DueWindow.all(),
    DueWindow.overdue(),
    DueWindow.next_n_days(7),
    DueWindow.next_n_days(15),
    DueWindow.next_n_days(20),
    DueWindow.next_n_days(31),
    DueWindow.next_n_days(45),
)


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def classify(
    document: LedgerDocument,
    as_of: date | datetime,
    window: DueWindow,
) -> bool:
    """True if ``document`` falls in ``window`` on ``as_of``."""
    if window.kind == DueWindowKind.ALL:
        return True
    today = _as_date(as_of)
    if window.kind == DueWindowKind.OVERDUE:
        return document.is_overdue(today)
    if document.due_date is None:
        return True
    return document.due_date <= today + timedelta(days=window.days)


@traced_engine("due_window", "1.0", fingerprint_fields=("as_of", "window"))
def filter_documents(
    documents: Iterable[LedgerDocument],
    as_of: date | datetime,
    window: DueWindow,
) -> tuple[LedgerDocument, ...]:
    """Documents in ``window``, in input order."""
    docs = tuple(documents)
    selected = tuple(d for d in docs if classify(d, as_of, window))
    logger.debug("due_window_filtered", extra={
        "window": str(window),
        "as_of": _as_date(as_of),
        "input_count": len(docs),
        "selected_count": len(selected),
    })
    return selected


@traced_engine("due_window", "1.0", fingerprint_fields=("as_of", "windows"))
def partition(
    documents: Iterable[LedgerDocument],
    as_of: date | datetime,
    windows: Iterable[DueWindow] = STANDARD_WINDOWS,
) -> dict[DueWindow, tuple[LedgerDocument, ...]]:
    """
    Membership of each window.  Windows overlap, so a document may appear
    under several keys.
    """
    docs = tuple(documents)
    return {
        window: tuple(d for d in docs if classify(d, as_of, window))
        for window in windows
    }
