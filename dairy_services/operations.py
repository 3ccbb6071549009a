"""
LedgerOperations -- the cooperative ledger's operation surface.

Responsibility:
    One method per external operation: feed requests and their transitions,
    feed maintenance, milk revenue, settlement, deduction application and the
    display queries.  Each mutating method is one unit of work.

Architecture position:
    Services -- sits above ``dairy_kernel`` and ``dairy_config``.
    Builds the kernel services per call from the active LedgerConfig (price
    table, workflow policy, default unit, milk price) and hands them a fresh
    session; the kernel services flush, this layer commits.

Invariants enforced:
    ATOMIC_UNIT_OF_WORK -- every mutating method commits once or not at all.
    Return values are frozen DTOs; no ORM instance escapes a session.

Failure modes:
    - Kernel errors (InvalidTransitionError, InsufficientStockError,
      NonPositiveBalanceError...) propagate unchanged after rollback.
    - AtomicCommitFailureError when the database rejects the commit (version
      conflict, constraint violation, lost connection).  Safe to retry.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from dairy_config import build_price_table, build_workflow_policy, get_active_config
from dairy_config.schema import LedgerConfig
from dairy_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from dairy_kernel.domain.clock import Clock, SystemClock
from dairy_kernel.domain.dtos import (
    AutoApplyResult,
    CooperativeTotals,
    FeedInfo,
    FeedRequestInfo,
    InventorySummary,
    RequestCostSummary,
    TransactionInfo,
)
from dairy_kernel.domain.ledger import FarmerBalance, TransactionKind
from dairy_kernel.domain.request_lifecycle import RequestStatus
from dairy_kernel.domain.stock import StockStatus
from dairy_kernel.logging_config import get_logger
from dairy_kernel.selectors import BalanceSelector, InventorySelector, RequestSelector
from dairy_kernel.services import (
    DeductionLedger,
    InventoryService,
    RequestLifecycleService,
    RevenueLedger,
    SettlementService,
)
from dairy_services.unit_of_work import SessionFactory, read_session, unit_of_work

logger = get_logger("operations")


class LedgerOperations:
    """
    Operation surface over one database.

    Usage:
        ops = LedgerOperations(get_session_factory(), get_active_config())
        request = ops.submit_feed_request("F-001", "Dairy Meal", 30)
        ops.transition_request(request.id, "approved")
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        config: LedgerConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()
        self._price_table = build_price_table(self._config)
        self._policy = build_workflow_policy(self._config)

    @classmethod
    def from_config(
        cls,
        config: LedgerConfig | None = None,
        clock: Clock | None = None,
        create_schema: bool = True,
    ) -> LedgerOperations:
        """Initialize the engine from ``config.database`` and wrap it."""
        config = config or get_active_config()
        init_engine_from_url(config.database.url, echo=config.database.echo)
        if create_schema:
            create_tables()
        return cls(get_session_factory(), config, clock)

    @property
    def config(self) -> LedgerConfig:
        return self._config

    # -----------------------------------------------------------------
    # Service wiring
    # -----------------------------------------------------------------

    def _inventory(self, session: Session) -> InventoryService:
        return InventoryService(session, self._clock, default_unit=self._config.stock.default_unit)

    def _lifecycle(self, session: Session) -> RequestLifecycleService:
        return RequestLifecycleService(
            session,
            self._clock,
            inventory=self._inventory(session),
            deductions=DeductionLedger(session, self._clock),
            price_table=self._price_table,
            policy=self._policy,
        )

    def _revenue(self, session: Session) -> RevenueLedger:
        return RevenueLedger(
            session,
            self._clock,
            milk_price_per_litre=self._config.pricing.milk_price_per_litre,
        )

    def _settlement(self, session: Session) -> SettlementService:
        return SettlementService(session, self._clock, DeductionLedger(session, self._clock))

    # -----------------------------------------------------------------
    # Feed requests
    # -----------------------------------------------------------------

    def submit_feed_request(
        self,
        farmer_id: str,
        feed_type_name: str,
        quantity: Decimal | int | str,
        feed_type_code: str | None = None,
    ) -> FeedRequestInfo:
        with unit_of_work(self._session_factory, "submit_feed_request", farmer_id=farmer_id) as session:
            return self._lifecycle(session).submit(
                farmer_id, feed_type_name, quantity, feed_type_code,
            )

    def transition_request(
        self,
        request_id: UUID | str,
        target_status: RequestStatus | str,
    ) -> FeedRequestInfo:
        """
        Move a request to ``target_status``.

        Raises:
            InvalidTransitionError, InsufficientStockError,
            MatchingFeedNotFoundError, DeductionAlreadySettledError,
            FeedRequestNotFoundError, AtomicCommitFailureError.
        """
        with unit_of_work(
            self._session_factory, "transition_request", request_id=str(request_id),
        ) as session:
            return self._lifecycle(session).transition(request_id, target_status)

    def get_request(self, request_id: UUID | str) -> FeedRequestInfo:
        with read_session(self._session_factory) as session:
            return RequestSelector(session).get_request(request_id)

    def list_requests(
        self,
        status: RequestStatus | str | None = None,
        farmer_id: str | None = None,
    ) -> list[FeedRequestInfo]:
        with read_session(self._session_factory) as session:
            return RequestSelector(session).list_requests(status=status, farmer_id=farmer_id)

    def get_request_cost_summary(self) -> RequestCostSummary:
        with read_session(self._session_factory) as session:
            return RequestSelector(session).cost_summary()

    # -----------------------------------------------------------------
    # Inventory
    # -----------------------------------------------------------------

    def upsert_feed(self, attributes: Mapping[str, Any]) -> FeedInfo:
        feed_id = attributes.get("id") or attributes.get("feed_id")
        with unit_of_work(
            self._session_factory,
            "upsert_feed",
            feed_id=str(feed_id) if feed_id else None,
        ) as session:
            return self._inventory(session).upsert_feed(attributes)

    def delete_feed(self, feed_id: UUID | str) -> None:
        with unit_of_work(self._session_factory, "delete_feed", feed_id=str(feed_id)) as session:
            self._inventory(session).delete_feed(feed_id)

    def get_feed(self, feed_id: UUID | str) -> FeedInfo:
        with read_session(self._session_factory) as session:
            return InventorySelector(session).get_feed(feed_id)

    def list_feeds(self) -> list[FeedInfo]:
        with read_session(self._session_factory) as session:
            return InventorySelector(session).list_feeds()

    def get_stock_status(self, feed_id: UUID | str) -> StockStatus:
        with read_session(self._session_factory) as session:
            return InventorySelector(session).get_stock_status(feed_id)

    def get_inventory_summary(self) -> InventorySummary:
        with read_session(self._session_factory) as session:
            return InventorySelector(session).inventory_summary()

    # -----------------------------------------------------------------
    # Ledger
    # -----------------------------------------------------------------

    def record_milk_delivery(
        self,
        farmer_id: str,
        litres: Decimal | int | str,
        delivered_on: date | None = None,
        unit_price: Decimal | int | str | None = None,
    ) -> TransactionInfo:
        with unit_of_work(self._session_factory, "record_milk_delivery", farmer_id=farmer_id) as session:
            return self._revenue(session).record_milk_delivery(
                farmer_id, litres, delivered_on=delivered_on, unit_price=unit_price,
            )

    def mark_revenue_paid(self, transaction_id: UUID | str) -> TransactionInfo:
        with unit_of_work(self._session_factory, "mark_revenue_paid") as session:
            return self._revenue(session).mark_revenue_paid(transaction_id)

    def compute_farmer_balance(self, farmer_id: str) -> FarmerBalance:
        with read_session(self._session_factory) as session:
            return BalanceSelector(session).farmer_balance(farmer_id)

    def farmer_transactions(
        self,
        farmer_id: str,
        kind: TransactionKind | str | None = None,
    ) -> list[TransactionInfo]:
        with read_session(self._session_factory) as session:
            return BalanceSelector(session).farmer_transactions(farmer_id, kind=kind)

    def compute_totals(self) -> CooperativeTotals:
        with read_session(self._session_factory) as session:
            return BalanceSelector(session).cooperative_totals()

    def settle_farmer(self, farmer_id: str) -> TransactionInfo:
        """
        Pay out a farmer's pending revenue net of active deductions.

        Raises:
            NothingToSettleError, NonPositiveBalanceError (nothing written),
            AtomicCommitFailureError.
        """
        with unit_of_work(self._session_factory, "settle_farmer", farmer_id=farmer_id) as session:
            return self._settlement(session).settle(farmer_id)

    def auto_apply_deductions(self) -> AutoApplyResult:
        with unit_of_work(self._session_factory, "auto_apply_deductions") as session:
            result = self._settlement(session).auto_apply_deductions()
        if result.farmers_processed:
            logger.info(
                "auto_apply_completed",
                extra={
                    "farmers_processed": result.farmers_processed,
                    "total_applied": str(result.total_applied),
                },
            )
        return result
