"""
Typed Exception Hierarchy for the Dairy Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (UI, API layer, batch jobs) must react to ledger failures precisely.
Every error therefore has:
  1. a TYPED exception class (catch by type, not message)
  2. a CODE class attribute (machine-readable, API-safe)
  3. structured DATA attributes (not just a message string)

Example:
    try:
        ops.transition_request(request_id, RequestStatus.APPROVED)
    except InsufficientStockError as e:
        api_response(code=e.code, available=e.available, requested=e.requested)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    DairyKernelError (base)
    |
    +-- InventoryError
    |   +-- InsufficientStockError
    |   +-- InvalidQuantityError
    |   +-- FeedNotFoundError
    |   +-- InvalidFeedError
    |   +-- ReferencedByOpenRequestError
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |   |   +-- DeductionAlreadySettledError
    |   +-- MatchingFeedNotFoundError
    |   +-- FeedRequestNotFoundError
    |   +-- InvalidFeedRequestError
    |
    +-- SettlementError
    |   +-- NothingToSettleError
    |   +-- NonPositiveBalanceError
    |   +-- TransactionNotFoundError
    |   +-- InvalidMilkDeliveryError
    |   +-- RevenueNotPendingError
    |
    +-- ConcurrencyError
        +-- AtomicCommitFailureError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                         | When Raised
-------------|------------------------------|-----------------------------------
Inventory    | INSUFFICIENT_STOCK           | reserve/commit would break 0<=reserved<=on_hand
             | INVALID_QUANTITY             | non-positive quantity passed to the engine
             | FEED_NOT_FOUND               | feed id does not exist
             | INVALID_FEED                 | feed attributes out of range
             | REFERENCED_BY_OPEN_REQUEST   | deleting a feed a non-terminal request uses
-------------|------------------------------|-----------------------------------
Workflow     | INVALID_TRANSITION           | status change not in the transition table
             | DEDUCTION_ALREADY_SETTLED    | revert of a delivered request already settled
             | MATCHING_FEED_NOT_FOUND      | strict mode only: no feed for the request
             | FEED_REQUEST_NOT_FOUND       | request id does not exist
             | INVALID_FEED_REQUEST         | submitted request attributes invalid
-------------|------------------------------|-----------------------------------
Settlement   | NOTHING_TO_SETTLE            | farmer has no pending revenue
             | NON_POSITIVE_BALANCE         | deductions >= pending revenue
             | TRANSACTION_NOT_FOUND        | ledger transaction id does not exist
             | INVALID_MILK_DELIVERY        | blank farmer, non-positive litres or price
             | REVENUE_NOT_PENDING          | paying out a revenue entry twice
-------------|------------------------------|-----------------------------------
Concurrency  | ATOMIC_COMMIT_FAILURE        | batched writes could not be applied (retryable)

===============================================================================
HANDLING PATTERNS
===============================================================================

1. NON-ERRORS: a feed-matching miss is a logged warning (degraded mode), not
   an exception, unless the workflow runs with ``require_matching_feed``.

2. RETRY: only ConcurrencyError subclasses are retryable.  The failed unit of
   work has been rolled back in full before the exception reaches the caller.

3. ALL OTHERS: no mutation happened; report ``e.code`` and the structured
   attributes to the user.
"""

from decimal import Decimal


class DairyKernelError(Exception):
    """
    Base exception for all dairy kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "DAIRY_KERNEL_ERROR"
    retryable: bool = False


# Inventory-related exceptions


class InventoryError(DairyKernelError):
    """Base exception for feed inventory errors."""

    code: str = "INVENTORY_ERROR"


class InsufficientStockError(InventoryError):
    """A reservation or delivery needs more stock than the feed holds."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        feed_id: str,
        feed_name: str,
        requested: Decimal,
        available: Decimal,
        unit: str = "kg",
    ):
        self.feed_id = feed_id
        self.feed_name = feed_name
        self.requested = requested
        self.available = available
        self.unit = unit
        super().__init__(
            f"Insufficient stock of {feed_name}: only {available} {unit} "
            f"available, but {requested} {unit} requested"
        )


class InvalidQuantityError(InventoryError):
    """Quantities handed to the reservation engine must be positive."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: Decimal, operation: str):
        self.quantity = quantity
        self.operation = operation
        super().__init__(f"{operation} requires a positive quantity, got {quantity}")


class FeedNotFoundError(InventoryError):
    """Feed with given ID was not found."""

    code: str = "FEED_NOT_FOUND"

    def __init__(self, feed_id: str):
        self.feed_id = feed_id
        super().__init__(f"Feed not found: {feed_id}")


class InvalidFeedError(InventoryError):
    """Feed attributes violate the inventory constraints."""

    code: str = "INVALID_FEED"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid feed {field}: {reason}")


class ReferencedByOpenRequestError(InventoryError):
    """Feed cannot be deleted while a pending, approved or unsettled delivered request uses it."""

    code: str = "REFERENCED_BY_OPEN_REQUEST"

    def __init__(self, feed_id: str, request_ids: list[str]):
        self.feed_id = feed_id
        self.request_ids = request_ids
        super().__init__(
            f"Feed {feed_id} is referenced by {len(request_ids)} open request(s)"
        )


# Workflow-related exceptions


class WorkflowError(DairyKernelError):
    """Base exception for feed request workflow errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """Status change is not in the request transition table."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, request_id: str, from_status: str, to_status: str, reason: str | None = None):
        self.request_id = request_id
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        message = f"Cannot move request {request_id} from {from_status} to {to_status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class DeductionAlreadySettledError(InvalidTransitionError):
    """A delivered request whose deduction was already settled cannot be reverted."""

    code: str = "DEDUCTION_ALREADY_SETTLED"

    def __init__(self, request_id: str, deduction_ids: list[str]):
        self.deduction_ids = deduction_ids
        super().__init__(
            request_id,
            "delivered",
            "pending",
            reason=f"{len(deduction_ids)} deduction(s) already processed",
        )


class MatchingFeedNotFoundError(WorkflowError):
    """No inventory feed matches the request's feed type (strict mode)."""

    code: str = "MATCHING_FEED_NOT_FOUND"

    def __init__(self, request_id: str, feed_type: str):
        self.request_id = request_id
        self.feed_type = feed_type
        super().__init__(f"No matching feed found in inventory for: {feed_type}")


class FeedRequestNotFoundError(WorkflowError):
    """Feed request with given ID was not found."""

    code: str = "FEED_REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Feed request not found: {request_id}")


class InvalidFeedRequestError(WorkflowError):
    """Submitted feed request is malformed."""

    code: str = "INVALID_FEED_REQUEST"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid feed request {field}: {reason}")


# Settlement-related exceptions


class SettlementError(DairyKernelError):
    """Base exception for settlement and payment errors."""

    code: str = "SETTLEMENT_ERROR"


class NothingToSettleError(SettlementError):
    """Farmer has no pending revenue entries."""

    code: str = "NOTHING_TO_SETTLE"

    def __init__(self, farmer_id: str):
        self.farmer_id = farmer_id
        super().__init__(f"No pending milk payments found for farmer {farmer_id}")


class NonPositiveBalanceError(SettlementError):
    """Active deductions meet or exceed pending revenue."""

    code: str = "NON_POSITIVE_BALANCE"

    def __init__(
        self,
        farmer_id: str,
        pending_revenue: Decimal,
        active_deductions: Decimal,
    ):
        self.farmer_id = farmer_id
        self.pending_revenue = pending_revenue
        self.active_deductions = active_deductions
        self.net_payable = pending_revenue - active_deductions
        super().__init__(
            f"No payment needed for farmer {farmer_id}: feed deductions "
            f"({active_deductions}) exceed pending milk ({pending_revenue})"
        )


class TransactionNotFoundError(SettlementError):
    """Ledger transaction with given ID was not found."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Ledger transaction not found: {transaction_id}")


class InvalidMilkDeliveryError(SettlementError):
    """Milk delivery has a missing farmer or a non-positive amount."""

    code: str = "INVALID_MILK_DELIVERY"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid milk delivery {field}: {reason}")


class RevenueNotPendingError(SettlementError):
    """Only pending revenue entries can be paid out."""

    code: str = "REVENUE_NOT_PENDING"

    def __init__(self, transaction_id: str, kind: str, status: str):
        self.transaction_id = transaction_id
        self.kind = kind
        self.status = status
        super().__init__(
            f"Transaction {transaction_id} ({kind}) is {status}, not pending revenue"
        )


# Concurrency-related exceptions


class ConcurrencyError(DairyKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"
    retryable: bool = True


class AtomicCommitFailureError(ConcurrencyError):
    """The batched writes of one operation could not be applied.

    The unit of work has been rolled back; no partial state exists and the
    caller may retry.
    """

    code: str = "ATOMIC_COMMIT_FAILURE"

    def __init__(self, operation: str, cause: str):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Atomic commit failed for {operation}: {cause}")
