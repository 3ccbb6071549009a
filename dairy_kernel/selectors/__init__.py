"""Read-only selectors returning DTOs."""

from dairy_kernel.selectors.balance_selector import BalanceSelector
from dairy_kernel.selectors.base import BaseSelector
from dairy_kernel.selectors.inventory_selector import InventorySelector
from dairy_kernel.selectors.request_selector import RequestSelector

__all__ = [
    "BaseSelector",
    "BalanceSelector",
    "InventorySelector",
    "RequestSelector",
]
