"""Stock level classification."""

from decimal import Decimal

import pytest

from dairy_kernel.domain.stock import StockLevel, classify_stock


@pytest.mark.parametrize(
    "available, minimum, expected",
    [
        (Decimal("0"), Decimal("10"), StockLevel.OUT_OF_STOCK),
        (Decimal("-5"), Decimal("0"), StockLevel.OUT_OF_STOCK),
        (Decimal("10"), Decimal("10"), StockLevel.LOW_STOCK),
        (Decimal("4"), Decimal("10"), StockLevel.LOW_STOCK),
        (Decimal("11"), Decimal("10"), StockLevel.IN_STOCK),
        (Decimal("1"), Decimal("0"), StockLevel.IN_STOCK),
    ],
)
def test_classify_stock(available, minimum, expected):
    assert classify_stock(available, minimum) is expected
