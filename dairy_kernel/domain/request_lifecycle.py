"""
Request lifecycle -- the feed request state machine.

Responsibility:
    Declares the allowed FeedRequest status transitions and the inventory and
    deduction side effects each one triggers.  ``plan_transition`` validates
    a requested move and returns the transition to execute.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.  RequestLifecycleService
    executes the plan (matching, reservation engine, deduction ledger) inside
    the caller's unit of work.

Transition table:

    from       -> to         inventory   deduction   needs feed
    ---------------------------------------------------------------
    pending    -> approved   reserve     -           yes
    approved   -> delivered  commit      post        yes
    approved   -> rejected   release     -           no
    approved   -> pending    release     -           no
    delivered  -> pending    restore     remove      no
    rejected   -> pending    -           -           no
    pending    -> rejected   -           -           no (opt-in only)

Invariants enforced:
    Any pair not in the table, same-state moves included, raises
    InvalidTransitionError before anything is mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from dairy_kernel.exceptions import InvalidTransitionError


class RequestStatus(str, Enum):
    """Lifecycle state of a feed request."""

    PENDING = "pending"
    APPROVED = "approved"
    DELIVERED = "delivered"
    REJECTED = "rejected"

    @property
    def is_open(self) -> bool:
        """Open requests hold (or may come to hold) a claim on a feed."""
        return self in (RequestStatus.PENDING, RequestStatus.APPROVED)


class InventoryEffect(str, Enum):
    NONE = "none"
    RESERVE = "reserve"
    COMMIT = "commit"
    RELEASE = "release"
    RESTORE = "restore"


class DeductionEffect(str, Enum):
    NONE = "none"
    POST = "post"
    REMOVE = "remove"


@dataclass(frozen=True)
class RequestTransition:
    """A valid status change and the side effects it triggers.

    ``requires_feed`` marks transitions that resolve the request to a feed
    by matching; the others act on the feed recorded at the previous step.
    """

    from_status: RequestStatus
    to_status: RequestStatus
    action: str
    inventory: InventoryEffect = InventoryEffect.NONE
    deduction: DeductionEffect = DeductionEffect.NONE
    requires_feed: bool = False


REQUEST_TRANSITIONS: tuple[RequestTransition, ...] = (
    RequestTransition(
        RequestStatus.PENDING, RequestStatus.APPROVED, "approve",
        inventory=InventoryEffect.RESERVE, requires_feed=True,
    ),
    RequestTransition(
        RequestStatus.APPROVED, RequestStatus.DELIVERED, "deliver",
        inventory=InventoryEffect.COMMIT, deduction=DeductionEffect.POST,
        requires_feed=True,
    ),
    RequestTransition(
        RequestStatus.APPROVED, RequestStatus.REJECTED, "reject",
        inventory=InventoryEffect.RELEASE,
    ),
    RequestTransition(
        RequestStatus.APPROVED, RequestStatus.PENDING, "unapprove",
        inventory=InventoryEffect.RELEASE,
    ),
    RequestTransition(
        RequestStatus.DELIVERED, RequestStatus.PENDING, "revert_delivery",
        inventory=InventoryEffect.RESTORE, deduction=DeductionEffect.REMOVE,
    ),
    RequestTransition(
        RequestStatus.REJECTED, RequestStatus.PENDING, "reopen",
    ),
)

# Only honoured when the workflow enables direct rejection.
DIRECT_REJECT_TRANSITION = RequestTransition(
    RequestStatus.PENDING, RequestStatus.REJECTED, "reject_pending",
)

_TABLE: dict[tuple[RequestStatus, RequestStatus], RequestTransition] = {
    (t.from_status, t.to_status): t for t in REQUEST_TRANSITIONS
}


def allowed_targets(
    from_status: RequestStatus,
    *,
    allow_direct_reject: bool = False,
) -> tuple[RequestStatus, ...]:
    """Statuses reachable from ``from_status`` in one step."""
    targets = [t.to_status for t in REQUEST_TRANSITIONS if t.from_status == from_status]
    if allow_direct_reject and from_status == RequestStatus.PENDING:
        targets.append(RequestStatus.REJECTED)
    return tuple(targets)


def plan_transition(
    request_id: str,
    from_status: RequestStatus | str,
    to_status: RequestStatus | str,
    *,
    allow_direct_reject: bool = False,
) -> RequestTransition:
    """
    Look up the transition for a requested status change.

    Raises:
        InvalidTransitionError: The pair is not in the table (or is the
            direct pending -> rejected move while it is disabled), or either
            status is unknown.
    """
    try:
        source = RequestStatus(from_status)
        target = RequestStatus(to_status)
    except ValueError:
        raise InvalidTransitionError(
            request_id, str(from_status), str(to_status), reason="unknown status",
        ) from None

    if source == target:
        raise InvalidTransitionError(
            request_id, source.value, target.value, reason="request is already in that status",
        )

    transition = _TABLE.get((source, target))
    if transition is not None:
        return transition

    if (source, target) == (DIRECT_REJECT_TRANSITION.from_status, DIRECT_REJECT_TRANSITION.to_status):
        if allow_direct_reject:
            return DIRECT_REJECT_TRANSITION
        raise InvalidTransitionError(
            request_id, source.value, target.value,
            reason="pending requests must be approved before they can be rejected",
        )

    raise InvalidTransitionError(request_id, source.value, target.value)


@dataclass(frozen=True)
class WorkflowPolicy:
    """Switches that relax or tighten the request workflow.

    allow_direct_reject:
        Permit pending -> rejected without side effects.
    require_matching_feed:
        Approve and deliver raise MatchingFeedNotFoundError instead of
        proceeding without stock effects when no feed matches.
    """

    allow_direct_reject: bool = False
    require_matching_feed: bool = False
