"""
DeductionLedger -- feed-cost debits tied to request deliveries.

Responsibility:
    Posts, removes and settles ``feed_deduction`` entries.  Each delivered
    request owns at most one active deduction.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by RequestLifecycleService (post on delivery, remove on revert)
    and SettlementService (mark processed).

Invariants enforced:
    SINGLE_ACTIVE_DEDUCTION -- post_deduction is idempotent: when an active
        deduction already exists for the request it is returned unchanged.
        The partial unique index on ledger_transactions backs this up.
    SETTLED_IS_FINAL -- remove_deductions refuses to delete entries that a
        settlement or deduction application already consumed.
    Flush-only: never commits or rolls back the session.

Failure modes:
    - DeductionAlreadySettledError from remove_deductions.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from dairy_kernel.domain.dtos import TransactionInfo, transaction_info
from dairy_kernel.domain.ledger import TransactionKind, TransactionStatus
from dairy_kernel.domain.values import round_money
from dairy_kernel.exceptions import DeductionAlreadySettledError, TransactionNotFoundError
from dairy_kernel.logging_config import get_logger
from dairy_kernel.models.feed_request import FeedRequest
from dairy_kernel.models.ledger_transaction import LedgerTransaction
from dairy_kernel.services.base import BaseService

logger = get_logger("services.deductions")

_DEBIT_KINDS = (
    TransactionKind.FEED_DEDUCTION.value,
    TransactionKind.DEDUCTION_APPLICATION.value,
)


class DeductionLedger(BaseService[LedgerTransaction]):
    """Service for feed deduction entries."""

    def _deductions_for_request(self, request_id: UUID, lock: bool = True) -> list[LedgerTransaction]:
        stmt = (
            select(LedgerTransaction)
            .where(
                LedgerTransaction.linked_request_id == request_id,
                LedgerTransaction.kind == TransactionKind.FEED_DEDUCTION.value,
            )
            .order_by(LedgerTransaction.created_at, LedgerTransaction.id)
        )
        if lock:
            stmt = stmt.with_for_update()
        return list(self.session.execute(stmt).scalars())

    def active_deduction_for(self, request_id: UUID) -> LedgerTransaction | None:
        for entry in self._deductions_for_request(request_id):
            if entry.status == TransactionStatus.ACTIVE.value:
                return entry
        return None

    def post_deduction(
        self,
        request: FeedRequest,
        cost: Decimal,
        description: str | None = None,
    ) -> TransactionInfo:
        """
        Insert one active feed_deduction of ``-|cost|`` for ``request``.

        Idempotent: returns the existing active deduction if there is one.
        """
        existing = self.active_deduction_for(request.id)
        if existing is not None:
            logger.info(
                "deduction_already_posted",
                extra={"request_id": str(request.id), "transaction_id": str(existing.id)},
            )
            return transaction_info(existing)

        entry = self._new_deduction(
            request.farmer_id,
            request.id,
            round_money(abs(cost)),
            description
            or f"Feed deduction: {request.requested_quantity} x {request.feed_type_name}",
        )
        self.session.flush()

        logger.info(
            "deduction_posted",
            extra={
                "farmer_id": request.farmer_id,
                "request_id": str(request.id),
                "transaction_id": str(entry.id),
                "amount": str(entry.amount),
            },
        )
        return transaction_info(entry)

    def post_carry_forward(
        self,
        source: LedgerTransaction,
        remainder: Decimal,
    ) -> LedgerTransaction:
        """Re-post the uncovered part of a partly applied deduction."""
        entry = self._new_deduction(
            source.farmer_id,
            source.linked_request_id,
            remainder,
            f"Carried forward from deduction {source.id}",
        )
        self.session.flush()
        logger.info(
            "deduction_carried_forward",
            extra={
                "farmer_id": source.farmer_id,
                "source_transaction_id": str(source.id),
                "transaction_id": str(entry.id),
                "amount": str(entry.amount),
            },
        )
        return entry

    def _new_deduction(
        self,
        farmer_id: str,
        request_id: UUID | None,
        amount: Decimal,
        description: str,
    ) -> LedgerTransaction:
        now = self._clock.now()
        entry = LedgerTransaction(
            farmer_id=farmer_id,
            kind=TransactionKind.FEED_DEDUCTION.value,
            status=TransactionStatus.ACTIVE.value,
            amount=-amount,
            linked_request_id=request_id,
            description=description,
            created_at=now,
            updated_at=now,
        )
        self.session.add(entry)
        return entry

    def remove_deductions(self, request_id: UUID) -> int:
        """
        Delete every feed_deduction linked to ``request_id``.

        Returns:
            Number of entries removed.

        Raises:
            DeductionAlreadySettledError: At least one linked deduction has
                been processed; nothing is deleted.
        """
        entries = self._deductions_for_request(request_id)
        settled = [e for e in entries if e.status != TransactionStatus.ACTIVE.value]
        if settled:
            raise DeductionAlreadySettledError(str(request_id), [str(e.id) for e in settled])

        for entry in entries:
            self.session.delete(entry)
        self.session.flush()

        if entries:
            logger.info(
                "deductions_removed",
                extra={"request_id": str(request_id), "removed_count": len(entries)},
            )
        return len(entries)

    def mark_processed(
        self,
        deduction_ids: Iterable[UUID],
        settled_by_id: UUID,
    ) -> list[TransactionInfo]:
        """
        Flip the given deductions from active to processed.

        Raises:
            TransactionNotFoundError: An id is unknown or is not a debit entry.
        """
        wanted = list(dict.fromkeys(deduction_ids))
        rows = {
            row.id: row
            for row in self.session.execute(
                select(LedgerTransaction)
                .where(
                    LedgerTransaction.id.in_(wanted),
                    LedgerTransaction.kind.in_(_DEBIT_KINDS),
                )
                .with_for_update()
            ).scalars()
        }
        for deduction_id in wanted:
            if deduction_id not in rows:
                raise TransactionNotFoundError(str(deduction_id))
        entries = [rows[i] for i in wanted]
        self.mark_entries_processed(entries, settled_by_id)
        return [transaction_info(e) for e in entries]

    def mark_entries_processed(
        self,
        entries: Iterable[LedgerTransaction],
        settled_by_id: UUID,
    ) -> int:
        """Flip already-locked active debit rows to processed."""
        now = self._clock.now()
        count = 0
        for entry in entries:
            if entry.status != TransactionStatus.ACTIVE.value:
                continue
            entry.status = TransactionStatus.PROCESSED.value
            entry.processed_at = now
            entry.settled_by_id = settled_by_id
            entry.updated_at = now
            count += 1
        self.session.flush()
        return count
