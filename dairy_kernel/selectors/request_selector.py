"""
Module: dairy_kernel.selectors.request_selector
Responsibility: Read-only feed request queries and the request cost summary.
Architecture position: Kernel > Selectors.

The cost summary reads the ``cost`` cached on each request at its last
transition; it never re-prices.
"""

from uuid import UUID

from sqlalchemy import select

from dairy_kernel.domain.dtos import FeedRequestInfo, RequestCostSummary, feed_request_info
from dairy_kernel.domain.request_lifecycle import RequestStatus
from dairy_kernel.domain.values import ZERO
from dairy_kernel.exceptions import FeedRequestNotFoundError
from dairy_kernel.models.feed_request import FeedRequest
from dairy_kernel.selectors.base import BaseSelector


class RequestSelector(BaseSelector[FeedRequest]):
    """Selector for feed requests."""

    def get_request(self, request_id: UUID | str) -> FeedRequestInfo:
        try:
            key = request_id if isinstance(request_id, UUID) else UUID(str(request_id))
        except ValueError:
            raise FeedRequestNotFoundError(str(request_id)) from None
        request = self.session.get(FeedRequest, key)
        if request is None:
            raise FeedRequestNotFoundError(str(request_id))
        return feed_request_info(request)

    def list_requests(
        self,
        status: RequestStatus | str | None = None,
        farmer_id: str | None = None,
    ) -> list[FeedRequestInfo]:
        """Requests, newest first, optionally filtered."""
        stmt = select(FeedRequest)
        if status is not None:
            stmt = stmt.where(FeedRequest.status == RequestStatus(status).value)
        if farmer_id is not None:
            stmt = stmt.where(FeedRequest.farmer_id == farmer_id)
        stmt = stmt.order_by(FeedRequest.created_at.desc(), FeedRequest.id)
        return [feed_request_info(r) for r in self.session.execute(stmt).scalars()]

    def cost_summary(self) -> RequestCostSummary:
        """Cost of open (pending + approved) requests vs delivered requests."""
        open_count = 0
        open_cost = ZERO
        delivered_count = 0
        delivered_cost = ZERO
        rows = self.session.execute(select(FeedRequest.status, FeedRequest.cost)).all()
        for status, cost in rows:
            if RequestStatus(status).is_open:
                open_count += 1
                open_cost += cost
            elif status == RequestStatus.DELIVERED.value:
                delivered_count += 1
                delivered_cost += cost
        return RequestCostSummary(
            open_request_count=open_count,
            open_cost=open_cost,
            delivered_request_count=delivered_count,
            delivered_cost=delivered_cost,
        )
