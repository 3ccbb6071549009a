"""
Unit of work -- one transaction per mutating operation.

Responsibility:
    Opens a session, binds the operation's log context, commits on success
    and rolls back on any failure.  Persistence failures are re-raised as
    ``AtomicCommitFailureError`` so callers see one retryable error type.

Architecture position:
    Services layer.  The kernel services below only flush; this is the single
    place that commits.

Invariants enforced:
    ATOMIC_UNIT_OF_WORK -- either every write of the operation is committed
    or the session is rolled back and nothing is.

Failure modes:
    - DairyKernelError subclasses propagate unchanged after rollback.
    - SQLAlchemyError (IntegrityError, StaleDataError from a version
      conflict, OperationalError...) becomes AtomicCommitFailureError.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dairy_kernel.exceptions import AtomicCommitFailureError, DairyKernelError
from dairy_kernel.logging_config import LogContext, get_logger

logger = get_logger("operations.unit_of_work")

SessionFactory = Callable[[], Session]


@contextmanager
def unit_of_work(
    session_factory: SessionFactory,
    operation: str,
    **context: str | None,
) -> Iterator[Session]:
    """
    Run one operation in its own transaction.

    Usage:
        with unit_of_work(factory, "settle_farmer", farmer_id=fid) as session:
            SettlementService(session, clock).settle(fid)
    """
    session = session_factory()
    with LogContext.bind(correlation_id=str(uuid4()), operation=operation, **context):
        try:
            yield session
            session.commit()
            logger.debug("transaction_committed")
        except DairyKernelError as exc:
            session.rollback()
            logger.info(
                "transaction_rolled_back",
                extra={"reason": exc.code},
            )
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error(
                "transaction_rolled_back",
                extra={"reason": "ATOMIC_COMMIT_FAILURE"},
                exc_info=True,
            )
            raise AtomicCommitFailureError(operation, f"{type(exc).__name__}: {exc}") from exc
        except Exception:
            session.rollback()
            logger.exception("transaction_rolled_back")
            raise
        finally:
            session.close()


@contextmanager
def read_session(session_factory: SessionFactory) -> Iterator[Session]:
    """Session for display queries; never commits."""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
