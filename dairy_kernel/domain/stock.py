"""
Stock -- stock level classification for display.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from dairy_kernel.domain.values import ZERO


class StockLevel(str, Enum):
    OUT_OF_STOCK = "out_of_stock"
    LOW_STOCK = "low_stock"
    IN_STOCK = "in_stock"


@dataclass(frozen=True)
class StockStatus:
    """Display status of one feed."""

    feed_id: str
    status: StockLevel
    on_hand: Decimal
    reserved: Decimal
    available: Decimal
    min_stock_level: Decimal


def classify_stock(available: Decimal, min_stock_level: Decimal) -> StockLevel:
    """available <= 0 is out of stock; available <= min level is low stock."""
    if available <= ZERO:
        return StockLevel.OUT_OF_STOCK
    if available <= (min_stock_level or ZERO):
        return StockLevel.LOW_STOCK
    return StockLevel.IN_STOCK
