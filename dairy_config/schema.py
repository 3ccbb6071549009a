"""
LedgerConfig schema.

Frozen dataclasses the loader parses the YAML configuration into.  These are
plain data; translation into kernel inputs lives in ``bridges.py``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class PricingConfig:
    """Prices used when a request does not resolve to an inventory feed."""

    currency: str = "KES"
    milk_price_per_litre: Decimal = Decimal("45")
    default_feed_price: Decimal = Decimal("50")
    # Keyed by feed type code and by display name
    fallback_feed_prices: dict[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class StockConfig:
    default_unit: str = "kg"


@dataclass(frozen=True)
class WorkflowConfig:
    allow_direct_reject: bool = False
    require_matching_feed: bool = False


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///dairy_ledger.db"
    echo: bool = False


@dataclass(frozen=True)
class LedgerConfig:
    """The complete runtime configuration."""

    config_id: str
    version: int
    pricing: PricingConfig
    stock: StockConfig
    workflow: WorkflowConfig
    database: DatabaseConfig
    checksum: str = ""
