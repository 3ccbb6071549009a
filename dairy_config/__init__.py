"""
dairy_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration -- sits above ``dairy_kernel`` and below
    ``dairy_services``.  The kernel MUST NEVER import from ``dairy_config``;
    ``bridges`` translates the parsed config into kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- the configured file does not exist.
    - ``ValueError`` / ``KeyError`` -- schema validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a ``config_loaded``
    log entry with the config id, version, source path and checksum.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dairy_config.bridges import build_price_table, build_workflow_policy
from dairy_config.loader import load_config
from dairy_config.schema import (
    DatabaseConfig,
    LedgerConfig,
    PricingConfig,
    StockConfig,
    WorkflowConfig,
)

_logger = logging.getLogger("dairy_kernel.config")

CONFIG_ENV_VAR = "DAIRY_LEDGER_CONFIG"

# Bundled configuration
DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> LedgerConfig:
    """The ONLY public configuration entrypoint.

    Resolution order: ``config_path`` argument, then the
    ``DAIRY_LEDGER_CONFIG`` environment variable, then the bundled
    ``sets/default.yaml``.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
        ValueError: If the file fails validation.
        KeyError: If a required key is missing.
    """
    if config_path is not None:
        path = Path(config_path)
    elif os.environ.get(CONFIG_ENV_VAR):
        path = Path(os.environ[CONFIG_ENV_VAR])
    else:
        path = DEFAULT_CONFIG_PATH

    config = load_config(path)

    _logger.info(
        "config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "config_path": str(path),
            "checksum": config.checksum,
            "fallback_price_count": len(config.pricing.fallback_feed_prices),
        },
    )
    return config


__all__ = [
    "get_active_config",
    "build_price_table",
    "build_workflow_policy",
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_PATH",
    "LedgerConfig",
    "PricingConfig",
    "StockConfig",
    "WorkflowConfig",
    "DatabaseConfig",
]
