"""
Data Transfer Objects for the dairy kernel.

These are pure, immutable data structures returned by services and
selectors.  They carry no ORM state, so they stay valid after the session
that produced them is closed.

The ``*_info`` builders read plain attributes from whatever row object they
are given; they never touch a session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from dairy_kernel.domain.ledger import TransactionKind, TransactionStatus
from dairy_kernel.domain.request_lifecycle import RequestStatus
from dairy_kernel.domain.values import ZERO


@dataclass(frozen=True)
class FeedInfo:
    """Immutable snapshot of a feed and its stock counters."""

    id: UUID
    name: str
    type: str
    unit: str
    quantity_on_hand: Decimal
    reserved_quantity: Decimal
    price_per_unit: Decimal
    min_stock_level: Decimal
    description: str | None = None
    last_delivery: dict[str, Any] | None = None
    last_restoration: dict[str, Any] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int | None = None

    @property
    def available_quantity(self) -> Decimal:
        return self.quantity_on_hand - self.reserved_quantity


@dataclass(frozen=True)
class FeedRequestInfo:
    """Immutable snapshot of a feed request."""

    id: UUID
    farmer_id: str
    feed_type_name: str
    feed_type_code: str | None
    requested_quantity: Decimal
    status: RequestStatus
    cost: Decimal
    unit_price: Decimal | None = None
    matched_feed_id: UUID | None = None
    stock_feed_id: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    status_changed_at: datetime | None = None
    version: int | None = None


@dataclass(frozen=True)
class TransactionInfo:
    """Immutable snapshot of one ledger transaction."""

    id: UUID
    farmer_id: str
    kind: TransactionKind
    status: TransactionStatus
    amount: Decimal
    created_at: datetime | None = None
    description: str | None = None
    linked_request_id: UUID | None = None
    quantity: Decimal | None = None
    unit_price: Decimal | None = None
    delivered_on: date | None = None
    paid_amount: Decimal | None = None
    paid_at: datetime | None = None
    processed_at: datetime | None = None
    settled_by_id: UUID | None = None
    pending_revenue: Decimal | None = None
    deduction_total: Decimal | None = None
    net_amount: Decimal | None = None
    remaining_pending: Decimal | None = None
    entry_count: int | None = None


@dataclass(frozen=True)
class AutoApplyResult:
    """Outcome of one batch deduction application run."""

    farmers_processed: int
    total_applied: Decimal
    applications: tuple[TransactionInfo, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class InventorySummary:
    """Cooperative-wide stock figures for the inventory screen."""

    feed_count: int
    total_on_hand: Decimal
    total_reserved: Decimal
    total_available: Decimal
    low_stock_count: int
    out_of_stock_count: int


@dataclass(frozen=True)
class RequestCostSummary:
    """Cached request costs split by workflow stage."""

    open_request_count: int
    open_cost: Decimal
    delivered_request_count: int
    delivered_cost: Decimal


@dataclass(frozen=True)
class CooperativeTotals:
    """Ledger totals across every farmer."""

    total_milk_value: Decimal
    paid_revenue: Decimal
    pending_revenue: Decimal
    active_deductions: Decimal
    settled_payments: Decimal = ZERO

    @property
    def net_payable(self) -> Decimal:
        return self.pending_revenue - self.active_deductions


def feed_info(feed: Any) -> FeedInfo:
    return FeedInfo(
        id=feed.id,
        name=feed.name,
        type=feed.type,
        unit=feed.unit,
        quantity_on_hand=feed.quantity_on_hand,
        reserved_quantity=feed.reserved_quantity,
        price_per_unit=feed.price_per_unit,
        min_stock_level=feed.min_stock_level,
        description=feed.description,
        last_delivery=feed.last_delivery,
        last_restoration=feed.last_restoration,
        created_at=feed.created_at,
        updated_at=feed.updated_at,
        version=feed.version,
    )


def feed_request_info(request: Any) -> FeedRequestInfo:
    return FeedRequestInfo(
        id=request.id,
        farmer_id=request.farmer_id,
        feed_type_name=request.feed_type_name,
        feed_type_code=request.feed_type_code,
        requested_quantity=request.requested_quantity,
        status=RequestStatus(request.status),
        cost=request.cost,
        unit_price=request.unit_price,
        matched_feed_id=request.matched_feed_id,
        stock_feed_id=request.stock_feed_id,
        created_at=request.created_at,
        updated_at=request.updated_at,
        status_changed_at=request.status_changed_at,
        version=request.version,
    )


def transaction_info(txn: Any) -> TransactionInfo:
    return TransactionInfo(
        id=txn.id,
        farmer_id=txn.farmer_id,
        kind=TransactionKind(txn.kind),
        status=TransactionStatus(txn.status),
        amount=txn.amount,
        created_at=txn.created_at,
        description=txn.description,
        linked_request_id=txn.linked_request_id,
        quantity=txn.quantity,
        unit_price=txn.unit_price,
        delivered_on=txn.delivered_on,
        paid_amount=txn.paid_amount,
        paid_at=txn.paid_at,
        processed_at=txn.processed_at,
        settled_by_id=txn.settled_by_id,
        pending_revenue=txn.pending_revenue,
        deduction_total=txn.deduction_total,
        net_amount=txn.net_amount,
        remaining_pending=txn.remaining_pending,
        entry_count=txn.entry_count,
    )
