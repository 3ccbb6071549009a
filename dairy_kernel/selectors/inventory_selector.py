"""
Module: dairy_kernel.selectors.inventory_selector
Responsibility: Read-only feed queries: feed lookups, per-feed stock status
    and the cooperative inventory summary.
Architecture position: Kernel > Selectors.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from dairy_kernel.domain.dtos import FeedInfo, InventorySummary, feed_info
from dairy_kernel.domain.stock import StockLevel, StockStatus, classify_stock
from dairy_kernel.domain.values import ZERO
from dairy_kernel.exceptions import FeedNotFoundError
from dairy_kernel.models.feed import Feed
from dairy_kernel.selectors.base import BaseSelector


class InventorySelector(BaseSelector[Feed]):
    """Selector for feed inventory."""

    def _get(self, feed_id: UUID | str) -> Feed:
        try:
            key = feed_id if isinstance(feed_id, UUID) else UUID(str(feed_id))
        except ValueError:
            raise FeedNotFoundError(str(feed_id)) from None
        feed = self.session.get(Feed, key)
        if feed is None:
            raise FeedNotFoundError(str(feed_id))
        return feed

    def get_feed(self, feed_id: UUID | str) -> FeedInfo:
        return feed_info(self._get(feed_id))

    def list_feeds(self) -> list[FeedInfo]:
        """All feeds, oldest first."""
        feeds = self.session.execute(
            select(Feed).order_by(Feed.created_at, Feed.id)
        ).scalars()
        return [feed_info(f) for f in feeds]

    def get_stock_status(self, feed_id: UUID | str) -> StockStatus:
        """
        Display status of one feed.

        Raises:
            FeedNotFoundError: Unknown feed id.
        """
        return self._status(self._get(feed_id))

    @staticmethod
    def _status(feed: Feed) -> StockStatus:
        available = feed.available_quantity
        return StockStatus(
            feed_id=str(feed.id),
            status=classify_stock(available, feed.min_stock_level),
            on_hand=feed.quantity_on_hand,
            reserved=feed.reserved_quantity,
            available=available,
            min_stock_level=feed.min_stock_level,
        )

    def list_stock_statuses(self) -> list[StockStatus]:
        feeds = self.session.execute(
            select(Feed).order_by(Feed.created_at, Feed.id)
        ).scalars()
        return [self._status(f) for f in feeds]

    def inventory_summary(self) -> InventorySummary:
        """Totals across every feed (quantities summed regardless of unit)."""
        statuses = self.list_stock_statuses()
        total_on_hand: Decimal = sum((s.on_hand for s in statuses), ZERO)
        total_reserved: Decimal = sum((s.reserved for s in statuses), ZERO)
        return InventorySummary(
            feed_count=len(statuses),
            total_on_hand=total_on_hand,
            total_reserved=total_reserved,
            total_available=total_on_hand - total_reserved,
            low_stock_count=sum(1 for s in statuses if s.status is StockLevel.LOW_STOCK),
            out_of_stock_count=sum(1 for s in statuses if s.status is StockLevel.OUT_OF_STOCK),
        )
