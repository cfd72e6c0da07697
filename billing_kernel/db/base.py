"""
Module: billing_kernel.db.base
Responsibility: Declarative base for the ledger replica ORM models.  Provides
    the opaque string primary key convention and a type annotation map so
    every monetary column shares one precision.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel; MUST NOT import from models/, selectors/ or domain/.

Invariants enforced:
    - Opaque identifiers: primary keys are the backend's own document ids,
      stored as String(64).  The replica never mints ids.
    - Decimal precision: Python Decimal maps to Numeric(38, 9).  NEVER use
      float for monetary amounts or tax rates.
    - Replica timestamp: synced_at records when the row was last refreshed
      from the billing backend.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar

from sqlalchemy import Date, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """
    Declarative base for all ledger replica models.

    Guarantees:
        - id is the backend's identifier, stored as String(64).
        - Decimal maps to Numeric(38, 9) -- financial-grade precision.
        - datetime maps to DateTime(timezone=True).
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        date: Date(),
    }

    id: Mapped[str] = mapped_column(String(64), primary_key=True)


class SyncedBase(Base):
    """Abstract base for rows mirrored from the billing backend."""

    __abstract__ = True

    synced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
