"""
Config-to-kernel bridges.

Translate ``LedgerConfig`` sections into the plain kernel value objects the
services take as constructor arguments.  The kernel never imports
``dairy_config``; this module is the only place the two meet.
"""

from __future__ import annotations

from dairy_config.schema import LedgerConfig
from dairy_kernel.domain.pricing import PriceTable
from dairy_kernel.domain.request_lifecycle import WorkflowPolicy


def build_price_table(config: LedgerConfig) -> PriceTable:
    return PriceTable(
        fallback_prices=dict(config.pricing.fallback_feed_prices),
        default_price=config.pricing.default_feed_price,
    )


def build_workflow_policy(config: LedgerConfig) -> WorkflowPolicy:
    return WorkflowPolicy(
        allow_direct_reject=config.workflow.allow_direct_reject,
        require_matching_feed=config.workflow.require_matching_feed,
    )
