"""
SettlementService -- farmer payouts and batch deduction application.

Responsibility:
    Settles a farmer's net pending revenue against their active deductions,
    and runs the batch job that folds outstanding feed deductions into
    deduction application entries.

Architecture position:
    Kernel > Services -- imperative shell.
    Reads ledger rows with ``SELECT ... FOR UPDATE``, plans with
    domain.ledger, and writes through DeductionLedger.  The operation
    surface commits everything in one unit of work.

Invariants enforced:
    ATOMIC_UNIT_OF_WORK -- settle() flips revenue, inserts the payment and
        processes deductions in one flush sequence; nothing is written until
        both preconditions hold.
    SETTLED_IS_FINAL -- only active deductions and pending revenue are
        touched; processed / paid rows are never reopened.
    Flush-only: never commits or rolls back the session.

Failure modes:
    - NothingToSettleError: no pending revenue for the farmer.
    - NonPositiveBalanceError: active deductions >= pending revenue.

Audit relevance:
    The settlement_payment row records pending revenue, deductions, net and
    the number of revenue entries paid; every consumed deduction carries the
    payment id in ``settled_by_id``.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from dairy_kernel.domain.clock import Clock
from dairy_kernel.domain.dtos import (
    AutoApplyResult,
    TransactionInfo,
    transaction_info,
)
from dairy_kernel.domain.ledger import (
    TransactionKind,
    TransactionStatus,
    compute_balance,
    is_active_deduction,
    is_pending_revenue,
    plan_deduction_application,
)
from dairy_kernel.domain.values import ZERO, round_money
from dairy_kernel.exceptions import NonPositiveBalanceError, NothingToSettleError
from dairy_kernel.logging_config import get_logger
from dairy_kernel.models.ledger_transaction import LedgerTransaction
from dairy_kernel.services.base import BaseService
from dairy_kernel.services.deduction_ledger import DeductionLedger

logger = get_logger("services.settlement")

_OPEN_STATUSES = (TransactionStatus.PENDING.value, TransactionStatus.ACTIVE.value)


class SettlementService(BaseService[LedgerTransaction]):
    """Service for settlement and deduction application."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        deductions: DeductionLedger | None = None,
    ):
        super().__init__(session, clock)
        self._deductions = deductions or DeductionLedger(session, self._clock)

    def _open_entries_for_update(self, farmer_id: str) -> list[LedgerTransaction]:
        """Pending revenue and active debits of one farmer, locked."""
        return list(
            self.session.execute(
                select(LedgerTransaction)
                .where(
                    LedgerTransaction.farmer_id == farmer_id,
                    LedgerTransaction.status.in_(_OPEN_STATUSES),
                )
                .order_by(LedgerTransaction.created_at, LedgerTransaction.id)
                .with_for_update()
            ).scalars()
        )

    # -----------------------------------------------------------------
    # Settlement
    # -----------------------------------------------------------------

    def settle(self, farmer_id: str) -> TransactionInfo:
        """
        Pay out a farmer's net pending revenue.

        Postconditions:
            - Every pending revenue entry is paid, ``paid_amount`` = net.
            - One settlement_payment entry of ``net`` exists.
            - Every contributing active deduction is processed and points at
              the payment.

        Raises:
            NothingToSettleError: No pending revenue entries.
            NonPositiveBalanceError: Net payable <= 0.
        """
        entries = self._open_entries_for_update(farmer_id)
        balance = compute_balance(farmer_id, entries)

        if not balance.has_pending:
            raise NothingToSettleError(farmer_id)
        if balance.net_payable <= ZERO:
            raise NonPositiveBalanceError(
                farmer_id, balance.pending_revenue, balance.active_deductions,
            )

        now = self._clock.now()
        net = round_money(balance.net_payable)
        payment = LedgerTransaction(
            id=uuid4(),
            farmer_id=farmer_id,
            kind=TransactionKind.SETTLEMENT_PAYMENT.value,
            status=TransactionStatus.COMPLETED.value,
            amount=net,
            pending_revenue=balance.pending_revenue,
            deduction_total=balance.active_deductions,
            net_amount=net,
            entry_count=balance.pending_entry_count,
            description=(
                f"Settlement: milk {balance.pending_revenue} "
                f"less deductions {balance.active_deductions}"
            ),
            created_at=now,
            updated_at=now,
        )
        self.session.add(payment)

        for entry in entries:
            if is_pending_revenue(entry):
                entry.status = TransactionStatus.PAID.value
                entry.paid_amount = net
                entry.paid_at = now
                entry.updated_at = now

        self._deductions.mark_entries_processed(
            [e for e in entries if is_active_deduction(e)],
            payment.id,
        )
        self.session.flush()

        logger.info(
            "farmer_settled",
            extra={
                "farmer_id": farmer_id,
                "transaction_id": str(payment.id),
                "pending_revenue": str(balance.pending_revenue),
                "active_deductions": str(balance.active_deductions),
                "net_amount": str(net),
                "revenue_entries": balance.pending_entry_count,
                "deduction_entries": balance.active_deduction_count,
            },
        )
        return transaction_info(payment)

    # -----------------------------------------------------------------
    # Batch deduction application
    # -----------------------------------------------------------------

    def _farmers_with_active_feed_deductions(self) -> list[str]:
        return list(
            self.session.execute(
                select(LedgerTransaction.farmer_id)
                .where(
                    LedgerTransaction.kind == TransactionKind.FEED_DEDUCTION.value,
                    LedgerTransaction.status == TransactionStatus.ACTIVE.value,
                )
                .distinct()
                .order_by(LedgerTransaction.farmer_id)
            ).scalars()
        )

    def auto_apply_deductions(self) -> AutoApplyResult:
        """
        Fold outstanding feed deductions into deduction application entries.

        For each farmer with active feed deductions and uncommitted pending
        revenue, one deduction_application of ``min(deductions, revenue)`` is
        recorded and the consumed feed deductions are processed, oldest
        first.  A partly covered deduction has its remainder carried forward
        as a new active feed deduction on the same request.  Revenue stays
        pending; paying it out is a separate settle().
        """
        applications: list[TransactionInfo] = []
        total_applied = ZERO

        for farmer_id in self._farmers_with_active_feed_deductions():
            entries = self._open_entries_for_update(farmer_id)
            plan = plan_deduction_application(farmer_id, entries)
            if plan is None:
                logger.debug("deduction_application_skipped", extra={"farmer_id": farmer_id})
                continue

            application = self._record_application(
                farmer_id,
                plan.applied,
                plan.uncommitted_revenue,
                plan.outstanding_deductions,
                plan.remaining_pending,
            )

            consumed_rows = [item.entry for item in plan.consumed]
            self._deductions.mark_entries_processed(consumed_rows, application.id)

            carry = plan.carry_forward
            if carry is not None:
                self._deductions.post_carry_forward(carry.entry, carry.remainder)

            applications.append(transaction_info(application))
            total_applied += plan.applied

        logger.info(
            "deductions_auto_applied",
            extra={
                "farmers_processed": len(applications),
                "total_applied": str(total_applied),
            },
        )
        return AutoApplyResult(
            farmers_processed=len(applications),
            total_applied=total_applied,
            applications=tuple(applications),
        )

    def _record_application(
        self,
        farmer_id: str,
        applied: Decimal,
        uncommitted_revenue: Decimal,
        outstanding: Decimal,
        remaining_pending: Decimal,
    ) -> LedgerTransaction:
        now = self._clock.now()
        application = LedgerTransaction(
            id=uuid4(),
            farmer_id=farmer_id,
            kind=TransactionKind.DEDUCTION_APPLICATION.value,
            status=TransactionStatus.ACTIVE.value,
            amount=-applied,
            pending_revenue=uncommitted_revenue,
            deduction_total=outstanding,
            remaining_pending=remaining_pending,
            description=f"Feed deductions applied against pending milk revenue: {applied}",
            created_at=now,
            updated_at=now,
        )
        self.session.add(application)
        self.session.flush()
        return application
