"""
RevenueLedger -- milk delivery revenue entries.

Responsibility:
    Records milk deliveries as pending revenue and pays out single revenue
    entries.  Bulk payout with deductions is SettlementService's job.

Architecture position:
    Kernel > Services -- imperative shell.  Flush-only.

Failure modes:
    - InvalidMilkDeliveryError for a blank farmer or a non-positive litre
      count or unit price.
    - TransactionNotFoundError / RevenueNotPendingError from
      mark_revenue_paid.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from dairy_kernel.domain.clock import Clock
from dairy_kernel.domain.dtos import TransactionInfo, transaction_info
from dairy_kernel.domain.ledger import TransactionKind, TransactionStatus
from dairy_kernel.domain.values import ZERO, round_money, to_decimal
from dairy_kernel.exceptions import (
    InvalidMilkDeliveryError,
    RevenueNotPendingError,
    TransactionNotFoundError,
)
from dairy_kernel.logging_config import get_logger
from dairy_kernel.models.ledger_transaction import LedgerTransaction
from dairy_kernel.services.base import BaseService, coerce_uuid

logger = get_logger("services.revenue")


class RevenueLedger(BaseService[LedgerTransaction]):
    """Service for milk revenue entries."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        milk_price_per_litre: Decimal = Decimal("45"),
    ):
        super().__init__(session, clock)
        self._milk_price = milk_price_per_litre

    def record_milk_delivery(
        self,
        farmer_id: str,
        litres: Decimal | int | str,
        delivered_on: date | None = None,
        unit_price: Decimal | int | str | None = None,
    ) -> TransactionInfo:
        """
        Record a milk delivery as a pending revenue entry.

        ``amount = litres x unit_price``; the unit price defaults to the
        configured milk price per litre.

        Raises:
            InvalidMilkDeliveryError: Blank farmer, or litres / unit price
                not a positive number.
        """
        if not farmer_id or not str(farmer_id).strip():
            raise InvalidMilkDeliveryError("farmer_id", "is required")
        litres = _positive("litres", litres)
        price = _positive("unit_price", self._milk_price if unit_price is None else unit_price)

        now = self._clock.now()
        entry = LedgerTransaction(
            farmer_id=farmer_id,
            kind=TransactionKind.REVENUE.value,
            status=TransactionStatus.PENDING.value,
            amount=round_money(litres * price),
            quantity=litres,
            unit_price=price,
            delivered_on=delivered_on or now.date(),
            description=f"Milk delivery: {litres} L",
            created_at=now,
            updated_at=now,
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "milk_delivery_recorded",
            extra={
                "farmer_id": farmer_id,
                "transaction_id": str(entry.id),
                "litres": str(litres),
                "amount": str(entry.amount),
            },
        )
        return transaction_info(entry)

    def mark_revenue_paid(self, transaction_id: UUID | str) -> TransactionInfo:
        """
        Pay out one pending revenue entry in full (``paid_amount = amount``).

        Raises:
            TransactionNotFoundError: Unknown id.
            RevenueNotPendingError: Entry is not a pending revenue entry.
        """
        key = coerce_uuid(transaction_id)
        entry = None
        if key is not None:
            entry = self.session.execute(
                select(LedgerTransaction)
                .where(LedgerTransaction.id == key)
                .with_for_update()
            ).scalar_one_or_none()
        if entry is None:
            raise TransactionNotFoundError(str(transaction_id))
        if entry.kind != TransactionKind.REVENUE.value or entry.status != TransactionStatus.PENDING.value:
            raise RevenueNotPendingError(str(entry.id), entry.kind, entry.status)

        now = self._clock.now()
        entry.status = TransactionStatus.PAID.value
        entry.paid_amount = entry.amount
        entry.paid_at = now
        entry.updated_at = now
        self.session.flush()

        logger.info(
            "revenue_marked_paid",
            extra={
                "farmer_id": entry.farmer_id,
                "transaction_id": str(entry.id),
                "amount": str(entry.amount),
            },
        )
        return transaction_info(entry)


def _positive(field: str, value: Decimal | int | str) -> Decimal:
    try:
        number = to_decimal(value)
    except ValueError:
        raise InvalidMilkDeliveryError(field, f"not a number: {value!r}") from None
    if number <= ZERO:
        raise InvalidMilkDeliveryError(field, f"must be positive, got {number}")
    return number
