"""
RequestLifecycleService -- executes feed request status transitions.

Responsibility:
    Creates feed requests and drives them through the state machine declared
    in domain.request_lifecycle, applying each transition's inventory and
    deduction side effects and re-pricing the request.

Architecture position:
    Kernel > Services -- imperative shell.
    Composes InventoryService (stock movements) and DeductionLedger (feed
    debits).  The operation surface wraps each call in one unit of work.

Invariants enforced:
    RESERVATION_BOUNDS -- stock is moved only through InventoryService.
    SINGLE_ACTIVE_DEDUCTION -- delivery posts through the idempotent
        DeductionLedger.post_deduction.
    SETTLED_IS_FINAL -- reverting a delivery whose deduction was settled
        raises DeductionAlreadySettledError before any stock moves.
    Flush-only: never commits or rolls back the session.

Feed resolution per transition:
    approve           match against current inventory
    deliver           the feed holding the reservation (``stock_feed_id``);
                      without one, match and reserve before committing
    release/restore   ``stock_feed_id`` only, never re-matched, so stock
                      goes back to the feed it came from
    no effect         recorded feed, else match (pricing only)

    A miss is degraded mode: the transition proceeds without stock effects
    and logs ``feed_match_missing``.  With ``require_matching_feed`` the
    approve and deliver transitions raise MatchingFeedNotFoundError instead.

Failure modes:
    - FeedRequestNotFoundError, InvalidFeedRequestError.
    - InvalidTransitionError / DeductionAlreadySettledError.
    - InsufficientStockError from the reservation engine.
    - MatchingFeedNotFoundError in strict mode.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from dairy_kernel.domain.clock import Clock
from dairy_kernel.domain.dtos import FeedRequestInfo, feed_request_info
from dairy_kernel.domain.feed_matching import match_feed
from dairy_kernel.domain.pricing import PriceTable
from dairy_kernel.domain.request_lifecycle import (
    DeductionEffect,
    InventoryEffect,
    RequestStatus,
    RequestTransition,
    WorkflowPolicy,
    plan_transition,
)
from dairy_kernel.domain.values import ZERO, to_decimal
from dairy_kernel.exceptions import (
    FeedRequestNotFoundError,
    InvalidFeedRequestError,
    MatchingFeedNotFoundError,
)
from dairy_kernel.logging_config import get_logger
from dairy_kernel.models.feed import Feed
from dairy_kernel.models.feed_request import FeedRequest
from dairy_kernel.services.base import BaseService, coerce_uuid
from dairy_kernel.services.deduction_ledger import DeductionLedger
from dairy_kernel.services.inventory_service import InventoryService

logger = get_logger("services.request_lifecycle")


class RequestLifecycleService(BaseService[FeedRequest]):
    """
    Service for the feed request workflow.

    Contract:
        ``submit`` and ``transition`` return ``FeedRequestInfo`` DTOs.  All
        rows touched by a transition (request, feed, deductions) are read
        with ``SELECT ... FOR UPDATE``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        inventory: InventoryService | None = None,
        deductions: DeductionLedger | None = None,
        price_table: PriceTable | None = None,
        policy: WorkflowPolicy | None = None,
    ):
        super().__init__(session, clock)
        self._inventory = inventory or InventoryService(session, self._clock)
        self._deductions = deductions or DeductionLedger(session, self._clock)
        self._prices = price_table or PriceTable()
        self._policy = policy or WorkflowPolicy()

    def get_request_for_update(self, request_id: UUID | str) -> FeedRequest:
        """Get ORM FeedRequest with a row lock (internal use)."""
        key = coerce_uuid(request_id)
        request = None
        if key is not None:
            request = self.session.execute(
                select(FeedRequest)
                .where(FeedRequest.id == key)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        if request is None:
            raise FeedRequestNotFoundError(str(request_id))
        return request

    # -----------------------------------------------------------------
    # Submission
    # -----------------------------------------------------------------

    def submit(
        self,
        farmer_id: str,
        feed_type_name: str,
        quantity: Decimal | int | str,
        feed_type_code: str | None = None,
    ) -> FeedRequestInfo:
        """
        Create a pending feed request priced against current inventory.

        Raises:
            InvalidFeedRequestError: Blank farmer or feed type, or a
                non-positive quantity.
        """
        if not farmer_id or not str(farmer_id).strip():
            raise InvalidFeedRequestError("farmer_id", "is required")
        if not feed_type_name or not feed_type_name.strip():
            raise InvalidFeedRequestError("feed_type_name", "is required")
        try:
            qty = to_decimal(quantity)
        except ValueError:
            raise InvalidFeedRequestError("requested_quantity", f"not a number: {quantity!r}") from None
        if qty <= ZERO:
            raise InvalidFeedRequestError("requested_quantity", "must be positive")

        now = self._clock.now()
        request = FeedRequest(
            id=uuid4(),
            farmer_id=str(farmer_id).strip(),
            feed_type_name=feed_type_name.strip(),
            feed_type_code=feed_type_code.strip() if feed_type_code else None,
            requested_quantity=qty,
            status=RequestStatus.PENDING.value,
            created_at=now,
            updated_at=now,
            status_changed_at=now,
        )
        feed = self._match(request, log_miss=False)
        self._reprice(request, feed)
        request.matched_feed_id = feed.id if feed is not None else None
        self.session.add(request)
        self.session.flush()

        logger.info(
            "feed_request_submitted",
            extra={
                "farmer_id": request.farmer_id,
                "request_id": str(request.id),
                "feed_type": request.feed_type_name,
                "requested_quantity": str(qty),
                "cost": str(request.cost),
            },
        )
        return feed_request_info(request)

    # -----------------------------------------------------------------
    # Transitions
    # -----------------------------------------------------------------

    def transition(
        self,
        request_id: UUID | str,
        target_status: RequestStatus | str,
    ) -> FeedRequestInfo:
        """
        Move a request to ``target_status`` and apply the side effects.

        Raises:
            FeedRequestNotFoundError: Unknown request id.
            InvalidTransitionError: Pair not in the transition table.
            DeductionAlreadySettledError: Reverting a settled delivery.
            InsufficientStockError: Approve or deliver without enough stock.
            MatchingFeedNotFoundError: Strict mode and no feed matches.
        """
        request = self.get_request_for_update(request_id)
        from_status = request.status
        plan = plan_transition(
            str(request.id),
            from_status,
            target_status,
            allow_direct_reject=self._policy.allow_direct_reject,
        )

        if plan.deduction is DeductionEffect.REMOVE:
            self._deductions.remove_deductions(request.id)

        feed = self._apply_inventory(request, plan)

        if feed is not None:
            pricing_feed = feed
        elif plan.requires_feed:
            pricing_feed = None
        else:
            pricing_feed = self._recorded_or_matched(request)
        self._reprice(request, pricing_feed)

        if plan.deduction is DeductionEffect.POST:
            self._deductions.post_deduction(request, request.cost)

        now = self._clock.now()
        request.status = plan.to_status.value
        request.matched_feed_id = pricing_feed.id if pricing_feed is not None else None
        request.status_changed_at = now
        request.updated_at = now
        self.session.flush()

        logger.info(
            "request_transitioned",
            extra={
                "farmer_id": request.farmer_id,
                "request_id": str(request.id),
                "action": plan.action,
                "from_status": from_status,
                "to_status": plan.to_status.value,
                "feed_id": str(feed.id) if feed is not None else None,
                "cost": str(request.cost),
            },
        )
        return feed_request_info(request)

    def _apply_inventory(self, request: FeedRequest, plan: RequestTransition) -> Feed | None:
        """
        Apply the transition's stock effect; returns the locked feed it hit.

        Reserve and commit resolve a feed by matching, unless the request
        already holds a reservation, in which case commit draws from that
        feed.  An approved request without a reservation is delivered by
        reserving first, so it can only take stock nobody else holds.
        Release and restore act on ``stock_feed_id`` only.
        """
        effect = plan.inventory
        if effect is InventoryEffect.NONE:
            return None

        qty = request.requested_quantity
        if effect is InventoryEffect.RESERVE:
            feed = self._matched_feed_for_update(request, plan)
            if feed is not None:
                self._inventory.reserve(feed, qty, request)
                request.stock_feed_id = feed.id
        elif effect is InventoryEffect.COMMIT:
            feed = self._inventory.find_feed_for_update(request.stock_feed_id)
            if feed is None:
                feed = self._matched_feed_for_update(request, plan)
                if feed is not None:
                    self._inventory.reserve(feed, qty, request)
            if feed is not None:
                self._inventory.commit(feed, qty, request)
                request.stock_feed_id = feed.id
        else:
            feed = self._inventory.find_feed_for_update(request.stock_feed_id)
            if feed is not None:
                if effect is InventoryEffect.RELEASE:
                    self._inventory.release(feed, qty, request)
                else:
                    self._inventory.restore(feed, qty, request)
            request.stock_feed_id = None

        if feed is None:
            logger.warning(
                "inventory_effect_skipped",
                extra={
                    "request_id": str(request.id),
                    "effect": effect.value,
                    "feed_type": request.feed_type_name,
                },
            )
        return feed

    def _matched_feed_for_update(
        self, request: FeedRequest, plan: RequestTransition,
    ) -> Feed | None:
        """Locked matching feed, or None in degraded mode."""
        feed = self._match(request)
        if feed is None:
            if plan.requires_feed and self._policy.require_matching_feed:
                raise MatchingFeedNotFoundError(str(request.id), request.feed_type_name)
            return None
        return self._inventory.get_feed_for_update(feed.id)

    def _recorded_or_matched(self, request: FeedRequest) -> Feed | None:
        feed = self._inventory.find_feed_for_update(request.matched_feed_id)
        if feed is None:
            feed = self._match(request, log_miss=False)
        return feed

    def _match(self, request: FeedRequest, log_miss: bool = True) -> Feed | None:
        result = match_feed(
            self._inventory.feeds_for_matching(),
            request.feed_identifiers,
        )
        if result is None:
            if log_miss:
                logger.warning(
                    "feed_match_missing",
                    extra={
                        "request_id": str(request.id),
                        "feed_type": request.feed_type_name,
                        "feed_code": request.feed_type_code,
                    },
                )
            return None
        if result.is_ambiguous:
            logger.warning(
                "feed_match_ambiguous",
                extra={
                    "request_id": str(request.id),
                    "feed_type": request.feed_type_name,
                    "rule": result.rule.value,
                    "chosen_feed_id": str(result.feed.id),
                    "candidate_ids": [str(f.id) for f in result.candidates],
                },
            )
        return result.feed

    def _reprice(self, request: FeedRequest, feed: Feed | None) -> None:
        price = self._prices.resolve(
            feed.price_per_unit if feed is not None else None,
            feed_type_code=request.feed_type_code,
            feed_type_name=request.feed_type_name,
        )
        request.unit_price = price.unit_price
        request.cost = price.cost_for(request.requested_quantity)
