"""
Module: billing_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors over the
    ledger replica.
Architecture position: Kernel > Selectors.  May import from db/ and models/.

Invariants enforced:
    - Read-only access: selectors accept a Session from the caller and MUST
      NOT call session.add(), session.delete(), session.commit() or
      session.flush().
    - DTO return convention: selectors return frozen domain objects, never
      ORM instances.
    - Session ownership: the caller owns the session and its lifetime.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from billing_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Guarantees:
        - session is stored as a public attribute for subclass query use.
        - No commit, flush, add or delete operations are performed.
    """

    def __init__(self, session: Session):
        self.session = session
