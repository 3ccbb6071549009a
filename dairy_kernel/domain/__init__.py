"""
Pure domain layer.

This module contains value objects and domain logic with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Configuration
- I/O

Domain functions receive snapshots (feeds, ledger entries) from services and
either return plans/results or mutate the snapshot they were handed.
"""

from dairy_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from dairy_kernel.domain.dtos import (
    AutoApplyResult,
    CooperativeTotals,
    FeedInfo,
    FeedRequestInfo,
    InventorySummary,
    RequestCostSummary,
    TransactionInfo,
)
from dairy_kernel.domain.feed_matching import FeedMatch, MatchRule, match_feed
from dairy_kernel.domain.ledger import (
    DeductionApplicationPlan,
    FarmerBalance,
    TransactionKind,
    TransactionStatus,
    compute_balance,
    plan_deduction_application,
)
from dairy_kernel.domain.pricing import PriceSource, PriceTable, ResolvedPrice, resolve_unit_price
from dairy_kernel.domain.request_lifecycle import (
    DeductionEffect,
    InventoryEffect,
    RequestStatus,
    RequestTransition,
    WorkflowPolicy,
    plan_transition,
)
from dairy_kernel.domain.reservation import StockMovement, available_quantity
from dairy_kernel.domain.stock import StockLevel, StockStatus, classify_stock
from dairy_kernel.domain.values import ZERO, round_money, to_decimal

__all__ = [
    # Time
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Values
    "ZERO",
    "round_money",
    "to_decimal",
    # Inventory
    "StockMovement",
    "available_quantity",
    "StockLevel",
    "StockStatus",
    "classify_stock",
    # Matching and pricing
    "FeedMatch",
    "MatchRule",
    "match_feed",
    "PriceSource",
    "PriceTable",
    "ResolvedPrice",
    "resolve_unit_price",
    # Request lifecycle
    "RequestStatus",
    "RequestTransition",
    "InventoryEffect",
    "DeductionEffect",
    "WorkflowPolicy",
    "plan_transition",
    # Ledger
    "TransactionKind",
    "TransactionStatus",
    "FarmerBalance",
    "DeductionApplicationPlan",
    "compute_balance",
    "plan_deduction_application",
    # DTOs
    "FeedInfo",
    "FeedRequestInfo",
    "TransactionInfo",
    "AutoApplyResult",
    "InventorySummary",
    "RequestCostSummary",
    "CooperativeTotals",
]
