"""
Module: dairy_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.  Selectors
    form the display side of the kernel: stock status, balances, summaries.
Architecture position: Kernel > Selectors.  May import from models/ and the
    pure domain layer.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(), session.delete(),
      session.commit(), or session.flush().
    - DTO return convention: selectors return frozen dataclasses, never ORM
      instances.
    - No row locks.  Display reads may be slightly stale; every write path
      re-reads with SELECT ... FOR UPDATE.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from dairy_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs or computed results.
    """

    def __init__(self, session: Session):
        self.session = session
