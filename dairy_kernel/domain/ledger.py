"""
Ledger -- farmer transaction kinds, balances and deduction application.

Responsibility:
    Classifies ledger transactions, computes a farmer's balance from a
    snapshot of their entries and plans how a batch deduction application
    consumes outstanding feed deductions.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Services load the
    entries (with row locks when they intend to write) and pass them in.

Transaction kinds:

    kind                    sign  statuses
    ---------------------------------------------------
    revenue                  +    pending -> paid
    feed_deduction           -    active  -> processed
    settlement_payment       +    completed
    deduction_application    -    active  -> processed

Balance rules:
    pending_revenue    = sum(amount) over pending revenue entries
    active_deductions  = sum(|amount|) over active feed_deduction and
                         active deduction_application entries
    net_payable        = pending_revenue - active_deductions  (may be < 0)
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Protocol
from uuid import UUID

from dairy_kernel.domain.values import ZERO


class TransactionKind(str, Enum):
    REVENUE = "revenue"
    FEED_DEDUCTION = "feed_deduction"
    SETTLEMENT_PAYMENT = "settlement_payment"
    DEDUCTION_APPLICATION = "deduction_application"

    @property
    def is_debit(self) -> bool:
        return self in (TransactionKind.FEED_DEDUCTION, TransactionKind.DEDUCTION_APPLICATION)


class TransactionStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    ACTIVE = "active"
    PROCESSED = "processed"
    COMPLETED = "completed"


class LedgerEntry(Protocol):
    id: UUID
    kind: str
    status: str
    amount: Decimal
    created_at: datetime


def is_pending_revenue(entry: LedgerEntry) -> bool:
    return entry.kind == TransactionKind.REVENUE and entry.status == TransactionStatus.PENDING


def is_paid_revenue(entry: LedgerEntry) -> bool:
    return entry.kind == TransactionKind.REVENUE and entry.status == TransactionStatus.PAID


def is_active_deduction(entry: LedgerEntry) -> bool:
    """Active debit of either kind; these reduce the farmer's net payable."""
    return TransactionKind(entry.kind).is_debit and entry.status == TransactionStatus.ACTIVE


def is_active_feed_deduction(entry: LedgerEntry) -> bool:
    return entry.kind == TransactionKind.FEED_DEDUCTION and entry.status == TransactionStatus.ACTIVE


def is_active_application(entry: LedgerEntry) -> bool:
    return entry.kind == TransactionKind.DEDUCTION_APPLICATION and entry.status == TransactionStatus.ACTIVE


def ledger_order(entries: Iterable[LedgerEntry]) -> list[LedgerEntry]:
    """Oldest first; id breaks ties so the order is deterministic."""
    return sorted(entries, key=lambda e: (e.created_at, str(e.id)))


@dataclass(frozen=True)
class FarmerBalance:
    """Point-in-time balance of one farmer's ledger."""

    farmer_id: str
    pending_revenue: Decimal
    active_deductions: Decimal
    net_payable: Decimal
    paid_revenue: Decimal = ZERO
    pending_entry_count: int = 0
    active_deduction_count: int = 0

    @property
    def has_pending(self) -> bool:
        return self.pending_entry_count > 0

    @property
    def has_deductions(self) -> bool:
        return self.active_deduction_count > 0

    @property
    def can_settle(self) -> bool:
        return self.has_pending and self.net_payable > ZERO


def compute_balance(farmer_id: str, entries: Iterable[LedgerEntry]) -> FarmerBalance:
    """Fold a farmer's ledger entries into a FarmerBalance."""
    pending = ZERO
    paid = ZERO
    deductions = ZERO
    pending_count = 0
    deduction_count = 0

    for entry in entries:
        if is_pending_revenue(entry):
            pending += entry.amount
            pending_count += 1
        elif is_paid_revenue(entry):
            paid += entry.amount
        elif is_active_deduction(entry):
            deductions += abs(entry.amount)
            deduction_count += 1

    return FarmerBalance(
        farmer_id=farmer_id,
        pending_revenue=pending,
        active_deductions=deductions,
        net_payable=pending - deductions,
        paid_revenue=paid,
        pending_entry_count=pending_count,
        active_deduction_count=deduction_count,
    )


# ---------------------------------------------------------------------------
# Deduction application
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConsumedDeduction:
    entry: LedgerEntry
    covered: Decimal
    remainder: Decimal = ZERO

    @property
    def is_partial(self) -> bool:
        return self.remainder > ZERO


@dataclass(frozen=True)
class DeductionApplicationPlan:
    """How much of a farmer's feed debt one application run absorbs.

    ``uncommitted_revenue`` is pending revenue not already earmarked by an
    earlier, still active application.
    """

    farmer_id: str
    uncommitted_revenue: Decimal
    outstanding_deductions: Decimal
    applied: Decimal
    consumed: tuple[ConsumedDeduction, ...]

    @property
    def remaining_pending(self) -> Decimal:
        return self.uncommitted_revenue - self.applied

    @property
    def carry_forward(self) -> ConsumedDeduction | None:
        for item in self.consumed:
            if item.is_partial:
                return item
        return None


def plan_deduction_application(
    farmer_id: str,
    entries: Sequence[LedgerEntry],
) -> DeductionApplicationPlan | None:
    """
    Plan one deduction application for a farmer, or None when there is no
    overlap between pending revenue and outstanding feed deductions.

    applied = min(outstanding feed deductions, uncommitted pending revenue).
    Feed deductions are consumed oldest-first; only the last one consumed
    can be partly covered, and its remainder is reported for carry-forward.
    """
    pending = sum((e.amount for e in entries if is_pending_revenue(e)), ZERO)
    earmarked = sum((abs(e.amount) for e in entries if is_active_application(e)), ZERO)
    feed_deductions = ledger_order(e for e in entries if is_active_feed_deduction(e))
    outstanding = sum((abs(e.amount) for e in feed_deductions), ZERO)

    uncommitted = pending - earmarked
    applied = min(outstanding, uncommitted)
    if applied <= ZERO:
        return None

    consumed: list[ConsumedDeduction] = []
    budget = applied
    for entry in feed_deductions:
        if budget <= ZERO:
            break
        owed = abs(entry.amount)
        covered = min(owed, budget)
        consumed.append(ConsumedDeduction(entry=entry, covered=covered, remainder=owed - covered))
        budget -= covered

    return DeductionApplicationPlan(
        farmer_id=farmer_id,
        uncommitted_revenue=uncommitted,
        outstanding_deductions=outstanding,
        applied=applied,
        consumed=tuple(consumed),
    )
