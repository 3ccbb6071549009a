"""
Module: dairy_kernel.models.ledger_transaction
Responsibility: ORM persistence for farmer ledger entries: milk revenue,
    feed deductions, settlement payments and deduction applications.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    SINGLE_ACTIVE_DEDUCTION -- partial unique index on linked_request_id
        over active feed_deduction rows (PostgreSQL and SQLite).
    Sign convention -- revenue and settlement_payment amounts are positive,
        feed_deduction and deduction_application amounts are negative.
    ``version`` is the mapper's version_id_col (optimistic locking).

Failure modes:
    - IntegrityError if a second active deduction is flushed for a request.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from dairy_kernel.db.base import UUID, TrackedBase, UUIDString

_ACTIVE_FEED_DEDUCTION = text("kind = 'feed_deduction' AND status = 'active'")


class LedgerTransaction(TrackedBase):
    """
    One entry in a farmer's ledger.

    Contract:
        Column groups are kind-specific; columns not used by a kind stay NULL.

        revenue               quantity (litres), unit_price, delivered_on,
                              paid_amount, paid_at
        feed_deduction        linked_request_id, processed_at, settled_by_id
        settlement_payment    pending_revenue, deduction_total, net_amount,
                              entry_count
        deduction_application pending_revenue, deduction_total,
                              remaining_pending, processed_at, settled_by_id
    """

    __tablename__ = "ledger_transactions"

    __table_args__ = (
        CheckConstraint(
            "kind IN ('revenue', 'feed_deduction', 'settlement_payment', "
            "'deduction_application')",
            name="ck_ledger_transactions_valid_kind",
        ),
        CheckConstraint(
            "status IN ('pending', 'paid', 'active', 'processed', 'completed')",
            name="ck_ledger_transactions_valid_status",
        ),
        CheckConstraint(
            "(kind IN ('revenue', 'settlement_payment') AND amount >= 0) OR "
            "(kind IN ('feed_deduction', 'deduction_application') AND amount <= 0)",
            name="ck_ledger_transactions_sign",
        ),
        Index(
            "uq_ledger_active_feed_deduction",
            "linked_request_id",
            unique=True,
            postgresql_where=_ACTIVE_FEED_DEDUCTION,
            sqlite_where=_ACTIVE_FEED_DEDUCTION,
        ),
        Index("idx_ledger_farmer_kind_status", "farmer_id", "kind", "status"),
        Index("idx_ledger_linked_request", "linked_request_id"),
    )

    farmer_id: Mapped[str] = mapped_column(String(100), nullable=False)

    kind: Mapped[str] = mapped_column(String(30), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False)

    # Signed: credits positive, debits negative
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    linked_request_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("feed_requests.id"),
        nullable=True,
    )

    # Revenue
    quantity: Mapped[Decimal | None] = mapped_column(nullable=True)
    unit_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    delivered_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    paid_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Deductions
    processed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    settled_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Settlement payment / deduction application summary
    pending_revenue: Mapped[Decimal | None] = mapped_column(nullable=True)
    deduction_total: Mapped[Decimal | None] = mapped_column(nullable=True)
    net_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    remaining_pending: Mapped[Decimal | None] = mapped_column(nullable=True)
    entry_count: Mapped[int | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<LedgerTransaction {self.kind} {self.amount} farmer={self.farmer_id} [{self.status}]>"
