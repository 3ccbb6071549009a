"""
Module: dairy_kernel.models.feed
Responsibility: ORM persistence for feed inventory items and their stock
    counters.
Architecture position: Kernel > Models.  May import from db/ only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    RESERVATION_BOUNDS -- 0 <= reserved_quantity <= quantity_on_hand, backed
        by check constraints so a buggy writer cannot commit a negative
        available quantity.
    Optimistic locking -- ``version`` is the mapper's version_id_col; a
        concurrent read-modify-write on the same row fails at flush with
        StaleDataError instead of overwriting the other writer's counters.

Failure modes:
    - IntegrityError when a flush would break a check constraint.
    - StaleDataError when the row changed since it was loaded.
"""

from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from dairy_kernel.db.base import TrackedBase


class Feed(TrackedBase):
    """
    A feed product held in cooperative inventory.

    Contract:
        Stock counters are mutated only through domain.reservation, called by
        InventoryService / RequestLifecycleService inside a unit of work.

    Guarantees:
        - available_quantity = quantity_on_hand - reserved_quantity >= 0.
        - last_delivery / last_restoration hold the most recent audit
          snapshot (request id, farmer id, quantity, timestamp).
    """

    __tablename__ = "feeds"

    __table_args__ = (
        CheckConstraint("quantity_on_hand >= 0", name="ck_feeds_on_hand_non_negative"),
        CheckConstraint("reserved_quantity >= 0", name="ck_feeds_reserved_non_negative"),
        CheckConstraint(
            "reserved_quantity <= quantity_on_hand",
            name="ck_feeds_reserved_within_on_hand",
        ),
        CheckConstraint("price_per_unit >= 0", name="ck_feeds_price_non_negative"),
        CheckConstraint("min_stock_level >= 0", name="ck_feeds_min_stock_non_negative"),
        Index("idx_feed_type", "type"),
        Index("idx_feed_created", "created_at", "id"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Product category, e.g. "dairy_meal"
    type: Mapped[str] = mapped_column(String(100), nullable=False)

    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="kg")

    quantity_on_hand: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    reserved_quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    price_per_unit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    min_stock_level: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    last_delivery: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    last_restoration: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def available_quantity(self) -> Decimal:
        return (self.quantity_on_hand or Decimal("0")) - (self.reserved_quantity or Decimal("0"))

    def __repr__(self) -> str:
        return (
            f"<Feed {self.name} ({self.type}): on_hand={self.quantity_on_hand} "
            f"reserved={self.reserved_quantity} {self.unit}>"
        )
