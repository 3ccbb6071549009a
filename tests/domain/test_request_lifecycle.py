"""Feed request transition table and its side effects."""

import pytest

from dairy_kernel.domain.request_lifecycle import (
    DeductionEffect,
    InventoryEffect,
    RequestStatus,
    allowed_targets,
    plan_transition,
)
from dairy_kernel.exceptions import InvalidTransitionError


class TestTransitionTable:
    @pytest.mark.parametrize(
        "source, target, inventory, deduction",
        [
            ("pending", "approved", InventoryEffect.RESERVE, DeductionEffect.NONE),
            ("approved", "delivered", InventoryEffect.COMMIT, DeductionEffect.POST),
            ("approved", "rejected", InventoryEffect.RELEASE, DeductionEffect.NONE),
            ("approved", "pending", InventoryEffect.RELEASE, DeductionEffect.NONE),
            ("delivered", "pending", InventoryEffect.RESTORE, DeductionEffect.REMOVE),
            ("rejected", "pending", InventoryEffect.NONE, DeductionEffect.NONE),
        ],
    )
    def test_allowed_transitions_and_effects(self, source, target, inventory, deduction):
        plan = plan_transition("req-1", source, target)

        assert plan.from_status == RequestStatus(source)
        assert plan.to_status == RequestStatus(target)
        assert plan.inventory is inventory
        assert plan.deduction is deduction

    def test_only_approve_and_deliver_match_a_feed(self):
        assert plan_transition("r", "pending", "approved").requires_feed
        assert plan_transition("r", "approved", "delivered").requires_feed
        assert not plan_transition("r", "delivered", "pending").requires_feed

    @pytest.mark.parametrize(
        "source, target",
        [
            ("pending", "delivered"),
            ("delivered", "approved"),
            ("delivered", "rejected"),
            ("rejected", "approved"),
            ("rejected", "delivered"),
        ],
    )
    def test_pairs_outside_the_table_raise(self, source, target):
        with pytest.raises(InvalidTransitionError) as exc_info:
            plan_transition("req-1", source, target)

        assert exc_info.value.from_status == source
        assert exc_info.value.to_status == target

    @pytest.mark.parametrize("status", [s.value for s in RequestStatus])
    def test_same_state_move_raises(self, status):
        with pytest.raises(InvalidTransitionError):
            plan_transition("req-1", status, status)

    def test_unknown_status_raises(self):
        with pytest.raises(InvalidTransitionError, match="unknown status"):
            plan_transition("req-1", "pending", "cancelled")

    def test_accepts_enum_members(self):
        plan = plan_transition("req-1", RequestStatus.PENDING, RequestStatus.APPROVED)
        assert plan.action == "approve"


class TestDirectReject:
    def test_pending_to_rejected_refused_by_default(self):
        with pytest.raises(InvalidTransitionError, match="must be approved"):
            plan_transition("req-1", "pending", "rejected")

    def test_pending_to_rejected_when_enabled_has_no_effects(self):
        plan = plan_transition("req-1", "pending", "rejected", allow_direct_reject=True)

        assert plan.action == "reject_pending"
        assert plan.inventory is InventoryEffect.NONE
        assert plan.deduction is DeductionEffect.NONE

    def test_allowed_targets_reflect_switch(self):
        assert allowed_targets(RequestStatus.PENDING) == (RequestStatus.APPROVED,)
        assert RequestStatus.REJECTED in allowed_targets(
            RequestStatus.PENDING, allow_direct_reject=True,
        )


def test_open_statuses():
    assert RequestStatus.PENDING.is_open
    assert RequestStatus.APPROVED.is_open
    assert not RequestStatus.DELIVERED.is_open
    assert not RequestStatus.REJECTED.is_open
