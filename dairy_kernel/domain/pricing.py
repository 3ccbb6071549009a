"""
Pricing -- unit price resolution and request cost.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The price table is
    configuration data handed in by the caller.

Resolution order:
    1. The matched feed's ``price_per_unit``, used as-is (zero included).
    2. The fallback table, keyed by machine code first, then display name.
       Exact keys are tried before a case-insensitive lookup.
    3. The default fallback price.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from dairy_kernel.domain.values import round_money


class PriceSource(str, Enum):
    FEED = "feed"
    FALLBACK_TABLE = "fallback_table"
    DEFAULT = "default"


@dataclass(frozen=True)
class ResolvedPrice:
    unit_price: Decimal
    source: PriceSource

    def cost_for(self, quantity: Decimal) -> Decimal:
        return round_money(quantity * self.unit_price)


def _lookup(table: Mapping[str, Decimal], key: str | None) -> Decimal | None:
    if not key:
        return None
    if key in table:
        return table[key]
    folded = key.strip().lower()
    for candidate, price in table.items():
        if candidate.strip().lower() == folded:
            return price
    return None


def resolve_unit_price(
    feed_price: Decimal | None,
    *,
    feed_type_code: str | None,
    feed_type_name: str | None,
    fallback_prices: Mapping[str, Decimal],
    default_price: Decimal,
) -> ResolvedPrice:
    """Pick the unit price for a request (see module docstring for order)."""
    if feed_price is not None:
        return ResolvedPrice(feed_price, PriceSource.FEED)

    for key in (feed_type_code, feed_type_name):
        price = _lookup(fallback_prices, key)
        if price is not None:
            return ResolvedPrice(price, PriceSource.FALLBACK_TABLE)

    return ResolvedPrice(default_price, PriceSource.DEFAULT)


@dataclass(frozen=True)
class PriceTable:
    """Fallback prices used when a request resolves to no feed."""

    fallback_prices: Mapping[str, Decimal] = field(default_factory=dict)
    default_price: Decimal = Decimal("50")

    def resolve(
        self,
        feed_price: Decimal | None,
        *,
        feed_type_code: str | None,
        feed_type_name: str | None,
    ) -> ResolvedPrice:
        return resolve_unit_price(
            feed_price,
            feed_type_code=feed_type_code,
            feed_type_name=feed_type_name,
            fallback_prices=self.fallback_prices,
            default_price=self.default_price,
        )
