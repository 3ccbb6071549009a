"""
Module: dairy_kernel.models.feed_request
Responsibility: ORM persistence for farmer feed requests.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - status is one of pending / approved / delivered / rejected; changes
      go through RequestLifecycleService only.
    - requested_quantity > 0.
    - Requests are never deleted, only transitioned.
    - ``version`` is the mapper's version_id_col (optimistic locking).
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from dairy_kernel.db.base import UUID, TrackedBase, UUIDString


class FeedRequest(TrackedBase):
    """
    A farmer's request to draw feed from inventory.

    Contract:
        ``cost`` and ``unit_price`` are recomputed and cached at every
        transition.  ``matched_feed_id`` is the feed resolved at the most
        recent transition and drives pricing only.  ``stock_feed_id`` is the
        feed whose counters carry this request: the reservation while
        approved, the drawn stock while delivered.  Release and restore act
        on it and clear it.
    """

    __tablename__ = "feed_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'delivered', 'rejected')",
            name="ck_feed_requests_valid_status",
        ),
        CheckConstraint("requested_quantity > 0", name="ck_feed_requests_quantity_positive"),
        Index("idx_feed_request_farmer_status", "farmer_id", "status"),
        Index("idx_feed_request_matched_feed", "matched_feed_id", "status"),
        Index("idx_feed_request_stock_feed", "stock_feed_id", "status"),
    )

    farmer_id: Mapped[str] = mapped_column(String(100), nullable=False)

    # Display name as submitted, e.g. "Dairy Meal"
    feed_type_name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Machine code, e.g. "dairy_meal"
    feed_type_code: Mapped[str | None] = mapped_column(String(100), nullable=True)

    requested_quantity: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    unit_price: Mapped[Decimal | None] = mapped_column(nullable=True)

    matched_feed_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("feeds.id", ondelete="SET NULL"),
        nullable=True,
    )

    stock_feed_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("feeds.id", ondelete="SET NULL"),
        nullable=True,
    )

    status_changed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def feed_identifiers(self) -> tuple[str, ...]:
        """Strings feed matching compares against feed type and name."""
        return tuple(i for i in (self.feed_type_name, self.feed_type_code) if i)

    def __repr__(self) -> str:
        return (
            f"<FeedRequest {self.id} farmer={self.farmer_id} "
            f"{self.requested_quantity} {self.feed_type_name} [{self.status}]>"
        )
