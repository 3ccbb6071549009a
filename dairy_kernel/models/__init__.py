"""ORM models for the dairy kernel."""

from dairy_kernel.models.feed import Feed
from dairy_kernel.models.feed_request import FeedRequest
from dairy_kernel.models.ledger_transaction import LedgerTransaction

__all__ = [
    "Feed",
    "FeedRequest",
    "LedgerTransaction",
]
