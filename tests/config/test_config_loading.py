"""dairy_config: YAML loading, validation and kernel bridges."""

from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from dairy_config import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_PATH,
    build_price_table,
    build_workflow_policy,
    get_active_config,
)
from dairy_config.loader import compute_checksum, parse_config
from dairy_kernel.domain.pricing import PriceSource


def _write(tmp_path: Path, data: dict) -> Path:
    path = tmp_path / "ledger.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaultConfig:
    def test_bundled_defaults(self, ledger_config):
        assert ledger_config.config_id == "dairy-ledger-default"
        assert ledger_config.pricing.currency == "KES"
        assert ledger_config.pricing.milk_price_per_litre == Decimal("45")
        assert ledger_config.pricing.default_feed_price == Decimal("50")
        assert ledger_config.stock.default_unit == "kg"
        assert not ledger_config.workflow.allow_direct_reject
        assert not ledger_config.workflow.require_matching_feed

    def test_fallback_table_keyed_by_code_and_name(self, ledger_config):
        prices = ledger_config.pricing.fallback_feed_prices
        assert len(prices) == 32
        assert prices["fish_meal"] == prices["Fish Meal"] == Decimal("80")

    def test_config_loaded_is_logged(self, captured_logs):
        config = get_active_config(DEFAULT_CONFIG_PATH)

        [entry] = [r for r in captured_logs() if r["message"] == "config_loaded"]
        assert entry["checksum"] == config.checksum

    def test_env_var_overrides_default(self, tmp_path, monkeypatch):
        path = _write(tmp_path, {"config_id": "coop-b", "version": 3})
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

        config = get_active_config()

        assert config.config_id == "coop-b"
        assert config.version == 3
        assert config.pricing.milk_price_per_litre == Decimal("45")


class TestValidation:
    def test_missing_config_id(self):
        with pytest.raises(KeyError):
            parse_config({"version": 1})

    def test_unknown_section(self):
        with pytest.raises(ValueError, match="Unknown configuration sections"):
            parse_config({"config_id": "x", "version": 1, "ledger": {}})

    def test_negative_price(self):
        with pytest.raises(ValueError, match="milk_price_per_litre"):
            parse_config({"config_id": "x", "version": 1, "pricing": {"milk_price_per_litre": -1}})

    def test_bad_currency(self):
        with pytest.raises(ValueError, match="currency"):
            parse_config({"config_id": "x", "version": 1, "pricing": {"currency": "KSHS"}})

    def test_non_boolean_switch(self):
        with pytest.raises(ValueError, match="allow_direct_reject"):
            parse_config({"config_id": "x", "version": 1, "workflow": {"allow_direct_reject": "maybe"}})

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError, match="mapping"):
            get_active_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")

    def test_checksum_is_stable(self):
        data = {"config_id": "x", "version": 1, "pricing": {"currency": "KES"}}
        assert compute_checksum(data) == compute_checksum(dict(reversed(list(data.items()))))


class TestBridges:
    def test_price_table(self, ledger_config):
        table = build_price_table(ledger_config)

        price = table.resolve(None, feed_type_code=None, feed_type_name="Maize Germ")

        assert price.unit_price == Decimal("40")
        assert price.source is PriceSource.FALLBACK_TABLE
        assert table.default_price == Decimal("50")

    def test_workflow_policy(self, make_config):
        policy = build_workflow_policy(make_config(allow_direct_reject=True))

        assert policy.allow_direct_reject
        assert not policy.require_matching_feed
