"""
Configuration Loader (``dairy_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen dataclasses
of ``dairy_config.schema``.  Runtime callers go through
``dairy_config.get_active_config()`` instead of calling this directly.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; ``config_id`` and ``version`` have no silent default.
* Prices are parsed as ``Decimal`` from their string form, never via float
  arithmetic.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the parsed
  document for configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Negative or non-numeric prices, unknown sections  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from dairy_config.schema import (
    DatabaseConfig,
    LedgerConfig,
    PricingConfig,
    StockConfig,
    WorkflowConfig,
)

_SECTIONS = frozenset({"config_id", "version", "pricing", "stock", "workflow", "database"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def parse_price(name: str, value: Any) -> Decimal:
    """Parse a non-negative price.  Floats go through ``str``."""
    if isinstance(value, bool):
        raise ValueError(f"{name}: expected a number, got {value!r}")
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"{name}: expected a number, got {value!r}") from None
    if not price.is_finite() or price < 0:
        raise ValueError(f"{name}: must be a non-negative number, got {value!r}")
    return price


def parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError(f"{name}: expected true or false, got {value!r}")


def parse_pricing(data: dict[str, Any]) -> PricingConfig:
    """Parse the ``pricing`` section."""
    defaults = PricingConfig()
    raw_table = data.get("fallback_feed_prices") or {}
    if not isinstance(raw_table, dict):
        raise ValueError("pricing.fallback_feed_prices must be a mapping")
    table = {
        str(key): parse_price(f"pricing.fallback_feed_prices.{key}", value)
        for key, value in raw_table.items()
    }
    currency = str(data.get("currency", defaults.currency)).strip().upper()
    if len(currency) != 3:
        raise ValueError(f"pricing.currency must be a 3-letter code, got {currency!r}")
    return PricingConfig(
        currency=currency,
        milk_price_per_litre=parse_price(
            "pricing.milk_price_per_litre",
            data.get("milk_price_per_litre", defaults.milk_price_per_litre),
        ),
        default_feed_price=parse_price(
            "pricing.default_feed_price",
            data.get("default_feed_price", defaults.default_feed_price),
        ),
        fallback_feed_prices=table,
    )


def parse_stock(data: dict[str, Any]) -> StockConfig:
    unit = str(data.get("default_unit", StockConfig.default_unit)).strip()
    if not unit:
        raise ValueError("stock.default_unit must not be blank")
    return StockConfig(default_unit=unit)


def parse_workflow(data: dict[str, Any]) -> WorkflowConfig:
    return WorkflowConfig(
        allow_direct_reject=parse_bool(
            "workflow.allow_direct_reject", data.get("allow_direct_reject", False)
        ),
        require_matching_feed=parse_bool(
            "workflow.require_matching_feed", data.get("require_matching_feed", False)
        ),
    )


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    url = data.get("url", DatabaseConfig.url)
    if not isinstance(url, str) or not url:
        raise ValueError("database.url must be a non-empty string")
    return DatabaseConfig(
        url=url,
        echo=parse_bool("database.echo", data.get("echo", False)),
    )


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"{name} must be a mapping")
    return value


def parse_config(data: dict[str, Any]) -> LedgerConfig:
    """
    Parse a full configuration document.

    Raises:
        KeyError: if ``config_id`` or ``version`` is missing.
        ValueError: if a section is malformed or unknown.
    """
    unknown = set(data) - _SECTIONS
    if unknown:
        raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

    return LedgerConfig(
        config_id=str(data["config_id"]),
        version=int(data["version"]),
        pricing=parse_pricing(_section(data, "pricing")),
        stock=parse_stock(_section(data, "stock")),
        workflow=parse_workflow(_section(data, "workflow")),
        database=parse_database(_section(data, "database")),
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> LedgerConfig:
    return parse_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
