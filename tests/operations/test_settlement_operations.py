"""Milk revenue, settlement and deduction application through LedgerOperations."""

from decimal import Decimal

import pytest

from dairy_kernel.domain.ledger import TransactionKind, TransactionStatus
from dairy_kernel.exceptions import (
    InvalidMilkDeliveryError,
    NonPositiveBalanceError,
    NothingToSettleError,
    RevenueNotPendingError,
)


@pytest.fixture
def feed(create_feed):
    return create_feed(quantity=1000, price_per_unit=45)


class TestSettleFarmer:
    def test_settle_pays_pending_revenue_net_of_deductions(
        self, ops, feed, deliver_request, record_milk,
    ):
        record_milk("F-001", "2000")
        delivered = deliver_request(quantity=30)

        balance = ops.compute_farmer_balance("F-001")
        assert balance.pending_revenue == Decimal("2000")
        assert balance.active_deductions == Decimal("1350")
        assert balance.net_payable == Decimal("650")

        payment = ops.settle_farmer("F-001")

        assert payment.kind is TransactionKind.SETTLEMENT_PAYMENT
        assert payment.amount == Decimal("650.00")
        [revenue] = ops.farmer_transactions("F-001", kind="revenue")
        assert revenue.status is TransactionStatus.PAID
        assert revenue.paid_amount == Decimal("650")
        [deduction] = ops.farmer_transactions("F-001", kind="feed_deduction")
        assert deduction.status is TransactionStatus.PROCESSED
        assert deduction.settled_by_id == payment.id
        assert deduction.linked_request_id == delivered.id
        assert ops.compute_farmer_balance("F-001").net_payable == Decimal("0")

    def test_non_positive_balance_mutates_nothing(self, ops, create_feed, deliver_request, record_milk):
        create_feed(quantity=100, price_per_unit=40)
        record_milk("F-001", "500")
        deliver_request(quantity=20)
        before = ops.farmer_transactions("F-001")

        with pytest.raises(NonPositiveBalanceError) as exc_info:
            ops.settle_farmer("F-001")

        assert exc_info.value.pending_revenue == Decimal("500")
        assert exc_info.value.active_deductions == Decimal("800")
        assert ops.farmer_transactions("F-001") == before
        assert ops.farmer_transactions("F-001", kind="settlement_payment") == []

    def test_nothing_to_settle(self, ops):
        with pytest.raises(NothingToSettleError):
            ops.settle_farmer("F-404")

    def test_second_settlement_has_nothing_left(self, ops, record_milk):
        record_milk("F-001", "300")
        ops.settle_farmer("F-001")

        with pytest.raises(NothingToSettleError):
            ops.settle_farmer("F-001")


class TestMilkRevenue:
    def test_record_with_configured_price(self, ops):
        entry = ops.record_milk_delivery("F-001", "12.5")

        assert entry.amount == Decimal("562.50")
        assert entry.unit_price == Decimal("45")

    def test_invalid_litres_rolled_back(self, ops, captured_logs):
        with pytest.raises(InvalidMilkDeliveryError):
            ops.record_milk_delivery("F-001", "0")

        assert ops.farmer_transactions("F-001") == []
        [rolled_back] = [r for r in captured_logs() if r["message"] == "transaction_rolled_back"]
        assert rolled_back["reason"] == "INVALID_MILK_DELIVERY"

    def test_mark_revenue_paid(self, ops, record_milk):
        entry = record_milk("F-001", "100")

        paid = ops.mark_revenue_paid(entry.id)

        assert paid.status is TransactionStatus.PAID
        with pytest.raises(RevenueNotPendingError):
            ops.mark_revenue_paid(entry.id)


class TestAutoApplyDeductions:
    def test_application_then_settlement(
        self, ops, feed, deliver_request, record_milk, deterministic_clock,
    ):
        record_milk("F-001", "2000")
        deliver_request(quantity=30)

        result = ops.auto_apply_deductions()

        assert result.farmers_processed == 1
        assert result.total_applied == Decimal("1350")
        [application] = ops.farmer_transactions("F-001", kind="deduction_application")
        assert application.amount == Decimal("-1350")
        assert application.remaining_pending == Decimal("650")
        [deduction] = ops.farmer_transactions("F-001", kind="feed_deduction")
        assert deduction.status is TransactionStatus.PROCESSED
        # Balance is unchanged: the application replaces the deduction
        assert ops.compute_farmer_balance("F-001").net_payable == Decimal("650")

        deterministic_clock.advance()
        payment = ops.settle_farmer("F-001")
        assert payment.amount == Decimal("650.00")

    def test_partial_application_carries_forward(self, ops, feed, deliver_request, record_milk):
        record_milk("F-001", "1000")
        delivered = deliver_request(quantity=30)

        result = ops.auto_apply_deductions()

        assert result.total_applied == Decimal("1000")
        active = [
            t for t in ops.farmer_transactions("F-001", kind="feed_deduction")
            if t.status is TransactionStatus.ACTIVE
        ]
        assert len(active) == 1
        assert active[0].amount == Decimal("-350")
        assert active[0].linked_request_id == delivered.id
        assert ops.compute_farmer_balance("F-001").net_payable == Decimal("-350")

    def test_nothing_to_apply(self, ops, record_milk):
        record_milk("F-001", "1000")

        result = ops.auto_apply_deductions()

        assert result.farmers_processed == 0
        assert result.applications == ()


def test_cooperative_totals(ops, feed, deliver_request, record_milk):
    record_milk("F-001", "2000")
    record_milk("F-002", "700")
    deliver_request(quantity=30)
    ops.settle_farmer("F-002")

    totals = ops.compute_totals()

    assert totals.total_milk_value == Decimal("2700")
    assert totals.paid_revenue == Decimal("700")
    assert totals.pending_revenue == Decimal("2000")
    assert totals.active_deductions == Decimal("1350")
    assert totals.settled_payments == Decimal("700")
