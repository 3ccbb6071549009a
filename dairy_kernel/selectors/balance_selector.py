"""
Module: dairy_kernel.selectors.balance_selector
Responsibility: Read-only ledger queries: per-farmer balances, transaction
    history and cooperative-wide totals.
Architecture position: Kernel > Selectors.

Invariants enforced:
    No stored balances.  Every figure is folded from LedgerTransaction rows
    at query time by domain.ledger, the same code the settlement path uses.
"""

from sqlalchemy import select

from dairy_kernel.domain.dtos import CooperativeTotals, TransactionInfo, transaction_info
from dairy_kernel.domain.ledger import (
    FarmerBalance,
    TransactionKind,
    TransactionStatus,
    compute_balance,
    is_active_deduction,
)
from dairy_kernel.domain.values import ZERO
from dairy_kernel.models.ledger_transaction import LedgerTransaction
from dairy_kernel.selectors.base import BaseSelector


class BalanceSelector(BaseSelector[LedgerTransaction]):
    """Selector for farmer balances and ledger totals."""

    def _entries(self, farmer_id: str) -> list[LedgerTransaction]:
        return list(
            self.session.execute(
                select(LedgerTransaction)
                .where(LedgerTransaction.farmer_id == farmer_id)
                .order_by(LedgerTransaction.created_at, LedgerTransaction.id)
            ).scalars()
        )

    def farmer_balance(self, farmer_id: str) -> FarmerBalance:
        return compute_balance(farmer_id, self._entries(farmer_id))

    def farmer_transactions(
        self,
        farmer_id: str,
        kind: TransactionKind | str | None = None,
    ) -> list[TransactionInfo]:
        """A farmer's ledger, oldest first."""
        entries = self._entries(farmer_id)
        if kind is not None:
            wanted = TransactionKind(kind).value
            entries = [e for e in entries if e.kind == wanted]
        return [transaction_info(e) for e in entries]

    def cooperative_totals(self) -> CooperativeTotals:
        milk_value = ZERO
        paid = ZERO
        pending = ZERO
        deductions = ZERO
        payments = ZERO
        for entry in self.session.execute(select(LedgerTransaction)).scalars():
            if entry.kind == TransactionKind.REVENUE.value:
                milk_value += entry.amount
                if entry.status == TransactionStatus.PAID.value:
                    paid += entry.amount
                else:
                    pending += entry.amount
            elif entry.kind == TransactionKind.SETTLEMENT_PAYMENT.value:
                payments += entry.amount
            elif is_active_deduction(entry):
                deductions += abs(entry.amount)
        return CooperativeTotals(
            total_milk_value=milk_value,
            paid_revenue=paid,
            pending_revenue=pending,
            active_deductions=deductions,
            settled_payments=payments,
        )
