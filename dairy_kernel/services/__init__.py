"""
Kernel services -- flush-only write paths.

Every service takes the caller's Session and never commits; the operation
surface in dairy_services owns the transaction boundary.
"""

from dairy_kernel.services.base import BaseService
from dairy_kernel.services.deduction_ledger import DeductionLedger
from dairy_kernel.services.inventory_service import InventoryService
from dairy_kernel.services.request_lifecycle_service import RequestLifecycleService
from dairy_kernel.services.revenue_ledger import RevenueLedger
from dairy_kernel.services.settlement_service import SettlementService

__all__ = [
    "BaseService",
    "DeductionLedger",
    "InventoryService",
    "RequestLifecycleService",
    "RevenueLedger",
    "SettlementService",
]
