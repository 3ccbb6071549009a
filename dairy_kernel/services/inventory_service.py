"""
InventoryService -- feed inventory maintenance and stock movements.

Responsibility:
    Creates, edits and deletes feeds, and applies the reservation engine's
    stock movements to locked Feed rows on behalf of the request lifecycle.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by RequestLifecycleService for reserve / commit / release /
    restore, and by the operation surface for feed maintenance.

Invariants enforced:
    RESERVATION_BOUNDS -- every counter change goes through
        domain.reservation; edits keep ``reserved_quantity`` and refuse an
        on-hand figure below it.
    Flush-only: never commits or rolls back the session.

Failure modes:
    - FeedNotFoundError: unknown feed id.
    - InvalidFeedError: missing or out-of-range attributes.
    - ReferencedByOpenRequestError: deleting a feed that a non-terminal
      request (pending, approved, delivered but unsettled) resolves to.
    - InsufficientStockError: propagated from the reservation engine.

Audit relevance:
    Each stock movement is logged with before/after counters.  A release
    that had to clamp is logged at WARNING because it means some earlier
    step released or never reserved the quantity.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from dairy_kernel.domain import reservation
from dairy_kernel.domain.clock import Clock
from dairy_kernel.domain.dtos import FeedInfo, feed_info
from dairy_kernel.domain.ledger import TransactionKind, TransactionStatus
from dairy_kernel.domain.request_lifecycle import RequestStatus
from dairy_kernel.domain.reservation import StockMovement
from dairy_kernel.domain.values import ZERO, to_decimal
from dairy_kernel.exceptions import (
    FeedNotFoundError,
    InvalidFeedError,
    ReferencedByOpenRequestError,
)
from dairy_kernel.logging_config import get_logger
from dairy_kernel.models.feed import Feed
from dairy_kernel.models.feed_request import FeedRequest
from dairy_kernel.models.ledger_transaction import LedgerTransaction
from dairy_kernel.services.base import BaseService, coerce_uuid

logger = get_logger("services.inventory")

_EDITABLE_TEXT = ("name", "type", "unit", "description")
_EDITABLE_NUMBERS = ("quantity_on_hand", "price_per_unit", "min_stock_level")
# Field names used by the inventory form
_ALIASES = {"quantity": "quantity_on_hand", "feed_id": "id"}


class InventoryService(BaseService[Feed]):
    """
    Service for feed inventory.

    Contract:
        Maintenance methods return ``FeedInfo`` DTOs.  Stock movement methods
        take a Feed row already locked by ``get_feed_for_update`` and return
        the engine's ``StockMovement``.
    """

    def __init__(self, session: Session, clock: Clock | None = None, default_unit: str = "kg"):
        super().__init__(session, clock)
        self._default_unit = default_unit

    # -----------------------------------------------------------------
    # Lookup
    # -----------------------------------------------------------------

    def get_feed_for_update(self, feed_id: UUID | str) -> Feed:
        """Get ORM Feed with a row lock (internal use by kernel services)."""
        key = coerce_uuid(feed_id)
        feed = None
        if key is not None:
            feed = self.session.execute(
                select(Feed)
                .where(Feed.id == key)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        if feed is None:
            raise FeedNotFoundError(str(feed_id))
        return feed

    def find_feed_for_update(self, feed_id: UUID | None) -> Feed | None:
        """Locked Feed row, or None when the id is empty or the feed is gone."""
        if feed_id is None:
            return None
        return self.session.execute(
            select(Feed)
            .where(Feed.id == feed_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def feeds_for_matching(self) -> list[Feed]:
        """All feeds in matching order (oldest first, id as tie-break)."""
        return list(
            self.session.execute(
                select(Feed).order_by(Feed.created_at, Feed.id)
            ).scalars()
        )

    # -----------------------------------------------------------------
    # Maintenance
    # -----------------------------------------------------------------

    def upsert_feed(self, attributes: Mapping[str, Any]) -> FeedInfo:
        """
        Create a feed, or edit one when ``attributes`` carries an ``id``.

        Editing never touches ``reserved_quantity``.

        Raises:
            InvalidFeedError: Missing name/type on create, negative or
                non-numeric figures, unknown keys, or an on-hand quantity
                below the outstanding reservations.
            FeedNotFoundError: ``id`` given but no such feed.
        """
        values = self._normalize_attributes(attributes)
        feed_id = values.pop("id", None)
        now = self._clock.now()

        if feed_id is None:
            feed = self._create(values, now)
            event = "feed_created"
        else:
            feed = self.get_feed_for_update(feed_id)
            self._apply_edit(feed, values, now)
            event = "feed_updated"

        self.session.flush()

        logger.info(
            event,
            extra={
                "feed_id": str(feed.id),
                "feed_name": feed.name,
                "quantity_on_hand": str(feed.quantity_on_hand),
                "reserved_quantity": str(feed.reserved_quantity),
            },
        )
        return feed_info(feed)

    def _normalize_attributes(self, attributes: Mapping[str, Any]) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for raw_key, value in attributes.items():
            key = _ALIASES.get(raw_key, raw_key)
            if key == "reserved_quantity":
                raise InvalidFeedError(key, "managed by the reservation engine")
            if key == "id":
                if value is not None:
                    values["id"] = value
            elif key in _EDITABLE_TEXT:
                values[key] = value.strip() if isinstance(value, str) else value
            elif key in _EDITABLE_NUMBERS:
                values[key] = self._non_negative(key, value)
            else:
                raise InvalidFeedError(str(raw_key), "unknown attribute")
        return values

    @staticmethod
    def _non_negative(field: str, value: Any) -> Decimal:
        if value is None or value == "":
            return ZERO
        try:
            number = to_decimal(value)
        except ValueError:
            raise InvalidFeedError(field, f"not a number: {value!r}") from None
        if number < ZERO:
            raise InvalidFeedError(field, "must not be negative")
        return number

    def _create(self, values: dict[str, Any], now) -> Feed:
        for required in ("name", "type"):
            if not values.get(required):
                raise InvalidFeedError(required, "is required")
        feed = Feed(
            name=values["name"],
            type=values["type"],
            unit=values.get("unit") or self._default_unit,
            quantity_on_hand=values.get("quantity_on_hand", ZERO),
            reserved_quantity=ZERO,
            price_per_unit=values.get("price_per_unit", ZERO),
            min_stock_level=values.get("min_stock_level", ZERO),
            description=values.get("description"),
            created_at=now,
            updated_at=now,
        )
        self.session.add(feed)
        return feed

    def _apply_edit(self, feed: Feed, values: dict[str, Any], now) -> None:
        for required in ("name", "type"):
            if required in values and not values[required]:
                raise InvalidFeedError(required, "must not be blank")

        on_hand = values.get("quantity_on_hand", feed.quantity_on_hand)
        if on_hand < feed.reserved_quantity:
            raise InvalidFeedError(
                "quantity_on_hand",
                f"{on_hand} is below the {feed.reserved_quantity} {feed.unit} "
                "reserved for approved requests",
            )

        for key, value in values.items():
            if key == "unit" and not value:
                continue
            setattr(feed, key, value)
        feed.updated_at = now

    def delete_feed(self, feed_id: UUID | str) -> None:
        """
        Delete a feed.

        A request blocks deletion while it is not terminal: pending,
        approved, or delivered with its feed deduction still active.
        Rejected and delivered-and-settled requests do not.

        Raises:
            FeedNotFoundError: No such feed.
            ReferencedByOpenRequestError: A non-terminal request resolves
                to this feed or holds stock on it.
        """
        feed = self.get_feed_for_update(feed_id)
        unsettled_delivery = (
            select(LedgerTransaction.id)
            .where(
                LedgerTransaction.linked_request_id == FeedRequest.id,
                LedgerTransaction.kind == TransactionKind.FEED_DEDUCTION.value,
                LedgerTransaction.status == TransactionStatus.ACTIVE.value,
            )
            .exists()
        )
        open_ids = list(
            self.session.execute(
                select(FeedRequest.id).where(
                    or_(
                        FeedRequest.matched_feed_id == feed.id,
                        FeedRequest.stock_feed_id == feed.id,
                    ),
                    or_(
                        FeedRequest.status.in_(
                            [RequestStatus.PENDING.value, RequestStatus.APPROVED.value]
                        ),
                        and_(
                            FeedRequest.status == RequestStatus.DELIVERED.value,
                            unsettled_delivery,
                        ),
                    ),
                )
            ).scalars()
        )
        if open_ids:
            raise ReferencedByOpenRequestError(str(feed.id), [str(i) for i in open_ids])

        self.session.delete(feed)
        self.session.flush()
        logger.info("feed_deleted", extra={"feed_id": str(feed.id), "feed_name": feed.name})

    # -----------------------------------------------------------------
    # Stock movements
    # -----------------------------------------------------------------

    def reserve(self, feed: Feed, quantity: Decimal, request: FeedRequest) -> StockMovement:
        movement = reservation.reserve(feed, quantity)
        feed.updated_at = self._clock.now()
        self._log_movement("feed_reserved", feed, movement, request)
        return movement

    def release(self, feed: Feed, quantity: Decimal, request: FeedRequest) -> StockMovement:
        movement = reservation.release(feed, quantity)
        feed.updated_at = self._clock.now()
        self._log_movement("reservation_released", feed, movement, request)
        if movement.was_clamped:
            logger.warning(
                "reservation_release_clamped",
                extra={
                    "feed_id": str(feed.id),
                    "request_id": str(request.id),
                    "requested_release": str(quantity),
                    "reserved_before": str(movement.reserved_before),
                    "shortfall": str(movement.clamped),
                },
            )
        return movement

    def commit(self, feed: Feed, quantity: Decimal, request: FeedRequest) -> StockMovement:
        movement = reservation.commit(feed, quantity)
        now = self._clock.now()
        feed.updated_at = now
        feed.last_delivery = self._audit_snapshot(request, quantity, now)
        self._log_movement("feed_committed", feed, movement, request)
        return movement

    def restore(self, feed: Feed, quantity: Decimal, request: FeedRequest) -> StockMovement:
        movement = reservation.restore(feed, quantity)
        now = self._clock.now()
        feed.updated_at = now
        feed.last_restoration = self._audit_snapshot(request, quantity, now)
        self._log_movement("inventory_restored", feed, movement, request)
        return movement

    @staticmethod
    def _audit_snapshot(request: FeedRequest, quantity: Decimal, now) -> dict[str, str]:
        return {
            "request_id": str(request.id),
            "farmer_id": request.farmer_id,
            "quantity": str(quantity),
            "at": now.isoformat(),
        }

    @staticmethod
    def _log_movement(
        event: str,
        feed: Feed,
        movement: StockMovement,
        request: FeedRequest,
    ) -> None:
        logger.info(
            event,
            extra={
                "feed_id": str(feed.id),
                "request_id": str(request.id),
                "quantity": str(movement.quantity),
                "on_hand_before": str(movement.on_hand_before),
                "on_hand_after": str(movement.on_hand_after),
                "reserved_before": str(movement.reserved_before),
                "reserved_after": str(movement.reserved_after),
            },
        )
