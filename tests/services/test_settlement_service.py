"""SettlementService: farmer settlement and batch deduction application."""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from dairy_kernel.domain.ledger import TransactionKind, TransactionStatus
from dairy_kernel.exceptions import NonPositiveBalanceError, NothingToSettleError
from dairy_kernel.models import LedgerTransaction


@pytest.fixture
def post_deduction(session, deterministic_clock):
    """Insert an active feed deduction row directly."""

    def _post(farmer_id: str, amount: str) -> LedgerTransaction:
        now = deterministic_clock.now()
        entry = LedgerTransaction(
            id=uuid4(),
            farmer_id=farmer_id,
            kind=TransactionKind.FEED_DEDUCTION.value,
            status=TransactionStatus.ACTIVE.value,
            amount=-Decimal(amount),
            description="test deduction",
            created_at=now,
            updated_at=now,
        )
        session.add(entry)
        session.flush()
        deterministic_clock.advance()
        return entry

    return _post


@pytest.fixture
def milk(revenue_ledger, deterministic_clock):
    def _milk(farmer_id: str, amount: str):
        info = revenue_ledger.record_milk_delivery(farmer_id, Decimal(amount), unit_price=Decimal("1"))
        deterministic_clock.advance()
        return info

    return _milk


def _rows(session, farmer_id, kind):
    return session.execute(
        select(LedgerTransaction)
        .where(LedgerTransaction.farmer_id == farmer_id, LedgerTransaction.kind == kind)
        .order_by(LedgerTransaction.created_at)
    ).scalars().all()


class TestSettle:
    def test_settle_pays_net(self, settlement_service, milk, post_deduction, session):
        milk("F-001", "2000")
        deduction = post_deduction("F-001", "1350")

        payment = settlement_service.settle("F-001")

        assert payment.kind is TransactionKind.SETTLEMENT_PAYMENT
        assert payment.amount == Decimal("650.00")
        assert payment.net_amount == Decimal("650.00")
        assert payment.entry_count == 1
        [revenue] = _rows(session, "F-001", "revenue")
        assert revenue.status == "paid"
        assert revenue.paid_amount == Decimal("650.00")
        assert deduction.status == "processed"
        assert deduction.settled_by_id == payment.id

    def test_nothing_to_settle(self, settlement_service, post_deduction):
        post_deduction("F-001", "100")

        with pytest.raises(NothingToSettleError):
            settlement_service.settle("F-001")

    def test_non_positive_balance_writes_nothing(
        self, settlement_service, milk, post_deduction, session,
    ):
        milk("F-001", "500")
        deduction = post_deduction("F-001", "800")

        with pytest.raises(NonPositiveBalanceError) as exc_info:
            settlement_service.settle("F-001")

        assert exc_info.value.net_payable == Decimal("-300")
        assert deduction.status == "active"
        assert _rows(session, "F-001", "settlement_payment") == []
        assert _rows(session, "F-001", "revenue")[0].status == "pending"

    def test_other_farmers_untouched(self, settlement_service, milk, session):
        milk("F-001", "100")
        milk("F-002", "200")

        settlement_service.settle("F-001")

        assert _rows(session, "F-002", "revenue")[0].status == "pending"


class TestAutoApplyDeductions:
    def test_full_application(self, settlement_service, milk, post_deduction, session):
        milk("F-001", "1000")
        d1 = post_deduction("F-001", "300")
        d2 = post_deduction("F-001", "200")

        result = settlement_service.auto_apply_deductions()

        assert result.farmers_processed == 1
        assert result.total_applied == Decimal("500")
        [application] = result.applications
        assert application.amount == Decimal("-500")
        assert application.remaining_pending == Decimal("500")
        assert d1.status == d2.status == "processed"
        assert d1.settled_by_id == application.id
        # Revenue stays pending until settlement
        assert _rows(session, "F-001", "revenue")[0].status == "pending"

    def test_partial_application_carries_remainder_forward(
        self, settlement_service, milk, post_deduction, session,
    ):
        milk("F-001", "600")
        post_deduction("F-001", "500")
        post_deduction("F-001", "300")

        result = settlement_service.auto_apply_deductions()

        assert result.total_applied == Decimal("600")
        active = [
            r for r in _rows(session, "F-001", "feed_deduction") if r.status == "active"
        ]
        assert len(active) == 1
        assert active[0].amount == Decimal("-200")

    def test_rerun_does_not_double_apply(self, settlement_service, milk, post_deduction):
        milk("F-001", "1000")
        post_deduction("F-001", "400")
        settlement_service.auto_apply_deductions()

        second = settlement_service.auto_apply_deductions()

        assert second.farmers_processed == 0
        assert second.total_applied == Decimal("0")

    def test_settle_after_application_nets_the_application(
        self, settlement_service, milk, post_deduction,
    ):
        milk("F-001", "1000")
        post_deduction("F-001", "400")
        settlement_service.auto_apply_deductions()

        payment = settlement_service.settle("F-001")

        assert payment.amount == Decimal("600.00")

    def test_farmer_without_revenue_skipped(self, settlement_service, post_deduction):
        post_deduction("F-009", "100")

        result = settlement_service.auto_apply_deductions()

        assert result.farmers_processed == 0
