"""
Reservation -- Inventory reservation arithmetic.

Responsibility:
    Owns the reserve / commit / release / restore arithmetic on a feed's
    stock counters and the bounds invariant that ties them together.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Operates on any object
    exposing the ``StockHolder`` attributes (the Feed ORM row in production, a
    plain dataclass in property tests).  Persistence is the caller's job and
    must happen in the same transaction as the triggering status write.

Invariants enforced:
    RESERVATION_BOUNDS -- 0 <= reserved_quantity <= quantity_on_hand after
    every operation.  reserve() and commit() refuse instead of breaking it;
    release() clamps at zero instead of going negative.

Failure modes:
    - InsufficientStockError from reserve() when available < q, and from
      commit() when on_hand < q.
    - InvalidQuantityError for q <= 0 on any operation.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from dairy_kernel.domain.values import ZERO
from dairy_kernel.exceptions import InsufficientStockError, InvalidQuantityError


class StockHolder(Protocol):
    """Attributes the reservation engine reads and mutates."""

    id: object
    name: str
    unit: str
    quantity_on_hand: Decimal
    reserved_quantity: Decimal


@dataclass(frozen=True)
class StockMovement:
    """Before/after snapshot of one reservation engine operation."""

    operation: str
    quantity: Decimal
    on_hand_before: Decimal
    reserved_before: Decimal
    on_hand_after: Decimal
    reserved_after: Decimal
    clamped: Decimal = ZERO

    @property
    def available_after(self) -> Decimal:
        return self.on_hand_after - self.reserved_after

    @property
    def was_clamped(self) -> bool:
        """True when release/commit asked to free more than was reserved."""
        return self.clamped > ZERO


def available_quantity(feed: StockHolder) -> Decimal:
    """On-hand stock not held by a reservation."""
    return (feed.quantity_on_hand or ZERO) - (feed.reserved_quantity or ZERO)


def _require_positive(quantity: Decimal, operation: str) -> None:
    if quantity is None or quantity <= ZERO:
        raise InvalidQuantityError(quantity, operation)


def _snapshot(feed: StockHolder) -> tuple[Decimal, Decimal]:
    return feed.quantity_on_hand or ZERO, feed.reserved_quantity or ZERO


def reserve(feed: StockHolder, quantity: Decimal) -> StockMovement:
    """Hold ``quantity`` for an approved request without reducing on-hand stock."""
    _require_positive(quantity, "reserve")
    on_hand, reserved = _snapshot(feed)
    available = on_hand - reserved
    if available < quantity:
        raise InsufficientStockError(
            str(feed.id), feed.name, quantity, available, feed.unit,
        )
    feed.reserved_quantity = reserved + quantity
    return StockMovement(
        operation="reserve",
        quantity=quantity,
        on_hand_before=on_hand,
        reserved_before=reserved,
        on_hand_after=on_hand,
        reserved_after=feed.reserved_quantity,
    )


def release(feed: StockHolder, quantity: Decimal) -> StockMovement:
    """
    Drop a reservation.  Never fails.

    Releasing more than is reserved clamps at zero; the excess is reported in
    ``StockMovement.clamped`` so the caller can flag the accounting anomaly.
    """
    _require_positive(quantity, "release")
    on_hand, reserved = _snapshot(feed)
    new_reserved = max(ZERO, reserved - quantity)
    feed.reserved_quantity = new_reserved
    return StockMovement(
        operation="release",
        quantity=quantity,
        on_hand_before=on_hand,
        reserved_before=reserved,
        on_hand_after=on_hand,
        reserved_after=new_reserved,
        clamped=max(ZERO, quantity - reserved),
    )


def commit(feed: StockHolder, quantity: Decimal) -> StockMovement:
    """Turn a reservation into an actual stock reduction (delivery)."""
    _require_positive(quantity, "commit")
    on_hand, reserved = _snapshot(feed)
    if on_hand < quantity:
        raise InsufficientStockError(
            str(feed.id), feed.name, quantity, on_hand, feed.unit,
        )
    new_on_hand = on_hand - quantity
    new_reserved = max(ZERO, reserved - quantity)
    # A delivery that was never fully reserved can leave stale reservations
    # above the new on-hand level; cap them to keep the bounds invariant.
    new_reserved = min(new_reserved, new_on_hand)
    feed.quantity_on_hand = new_on_hand
    feed.reserved_quantity = new_reserved
    return StockMovement(
        operation="commit",
        quantity=quantity,
        on_hand_before=on_hand,
        reserved_before=reserved,
        on_hand_after=new_on_hand,
        reserved_after=new_reserved,
        clamped=max(ZERO, quantity - reserved),
    )


def restore(feed: StockHolder, quantity: Decimal) -> StockMovement:
    """Put delivered stock back on hand (reverting a delivery)."""
    _require_positive(quantity, "restore")
    on_hand, reserved = _snapshot(feed)
    feed.quantity_on_hand = on_hand + quantity
    return StockMovement(
        operation="restore",
        quantity=quantity,
        on_hand_before=on_hand,
        reserved_before=reserved,
        on_hand_after=feed.quantity_on_hand,
        reserved_after=reserved,
    )
