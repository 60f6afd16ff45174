"""Tests for shop_config: YAML loading, environment overrides and bridges."""

from decimal import Decimal

import pytest
import yaml

from shop_config import clear_active_config, get_active_config, load_config
from shop_config.bridges import build_billing_settings, build_shop_operations
from shop_kernel.api import ShopOperations
from shop_kernel.db.engine import get_engine, reset_engine


def _write(tmp_path, data) -> str:
    path = tmp_path / "shop.yaml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


class TestLoadConfig:
    def test_packaged_defaults(self):
        config = load_config(env={})

        assert config.database.url == "sqlite:///shop.db"
        assert config.billing.currency == "USD"
        assert config.billing.tax_rate == Decimal("0")
        assert config.billing.bill_number_prefix == "BILL"
        assert config.log_level == "INFO"
        assert config.source.endswith("defaults.yaml")

    def test_file_overrides_defaults(self, tmp_path):
        path = _write(tmp_path, {
            "billing": {"currency": "EUR", "tax_rate": "19"},
            "database": {"url": "postgresql://shop@localhost/shop"},
        })

        config = load_config(path, env={})

        assert config.billing.currency == "EUR"
        assert config.billing.tax_rate == Decimal("19")
        assert config.billing.bill_number_prefix == "BILL"
        assert config.database.url == "postgresql://shop@localhost/shop"
        assert config.database.pool_size == 10
        assert config.source == path

    def test_float_tax_rate_read_exactly(self, tmp_path):
        path = _write(tmp_path, {"billing": {"tax_rate": 8.25}})
        assert load_config(path, env={}).billing.tax_rate == Decimal("8.25")

    def test_config_path_from_environment(self, tmp_path):
        path = _write(tmp_path, {"billing": {"bill_number_prefix": "INV"}})

        config = load_config(env={"SHOP_CONFIG_PATH": path})

        assert config.billing.bill_number_prefix == "INV"

    def test_environment_overrides_file(self, tmp_path):
        path = _write(tmp_path, {"billing": {"tax_rate": "5"}})

        config = load_config(path, env={
            "SHOP_TAX_RATE": "7.5",
            "SHOP_DATABASE_URL": "sqlite:///other.db",
            "SHOP_LOG_LEVEL": "debug",
        })

        assert config.billing.tax_rate == Decimal("7.5")
        assert config.database.url == "sqlite:///other.db"
        assert config.log_level == "DEBUG"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml", env={})

    @pytest.mark.parametrize("billing", [
        {"currency": "usd"},
        {"currency": "EURO"},
        {"tax_rate": "-1"},
        {"tax_rate": "101"},
        {"tax_rate": "lots"},
        {"tax_rate": True},
        {"bill_number_prefix": "BILL NO"},
    ])
    def test_invalid_billing_values(self, tmp_path, billing):
        path = _write(tmp_path, {"billing": billing})
        with pytest.raises(ValueError):
            load_config(path, env={})

    def test_invalid_log_level(self):
        with pytest.raises(ValueError):
            load_config(env={"SHOP_LOG_LEVEL": "chatty"})

    def test_empty_database_url(self, tmp_path):
        path = _write(tmp_path, {"database": {"url": ""}})
        with pytest.raises(ValueError):
            load_config(path, env={})


class TestActiveConfig:
    @pytest.fixture(autouse=True)
    def _fresh(self):
        clear_active_config()
        yield
        clear_active_config()

    def test_cached_until_reload(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SHOP_CONFIG_PATH", _write(tmp_path, {"billing": {"currency": "GBP"}}))
        first = get_active_config()

        monkeypatch.setenv("SHOP_TAX_RATE", "20")
        assert get_active_config() is first

        reloaded = get_active_config(reload=True)
        assert reloaded.billing.currency == "GBP"
        assert reloaded.billing.tax_rate == Decimal("20")


class TestBridges:
    def test_billing_settings(self, tmp_path):
        path = _write(tmp_path, {
            "billing": {"currency": "EUR", "tax_rate": "19", "bill_number_prefix": "RE"},
        })
        settings = build_billing_settings(load_config(path, env={}))

        assert settings.currency == "EUR"
        assert settings.default_tax_rate == Decimal("19")
        assert settings.bill_number_prefix == "RE"

    def test_build_shop_operations(self, tmp_path):
        path = _write(tmp_path, {"database": {"url": f"sqlite:///{tmp_path / 'bridge.db'}"}})
        reset_engine()
        try:
            ops = build_shop_operations(load_config(path, env={}))

            assert isinstance(ops, ShopOperations)
            assert get_engine().dialect.name == "sqlite"
        finally:
            reset_engine()
