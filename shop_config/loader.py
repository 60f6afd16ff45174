"""
Configuration Loader (``shop_config.loader``).

Responsibility
--------------
Reads the shop's YAML configuration, layers it over the packaged
``defaults.yaml``, applies environment overrides and parses the result into
the frozen ``shop_config.schema`` dataclasses.

Environment overrides
---------------------
* ``SHOP_CONFIG_PATH``  -- YAML file layered over the packaged defaults.
* ``SHOP_DATABASE_URL`` -- database.url
* ``SHOP_TAX_RATE``     -- billing.tax_rate (percent)
* ``SHOP_LOG_LEVEL``    -- logging.level

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError`` with a descriptive message.
"""

from __future__ import annotations

import logging
import os
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Mapping

import yaml

from shop_config.schema import BillingConfig, DatabaseConfig, ShopConfig

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

ENV_CONFIG_PATH = "SHOP_CONFIG_PATH"
ENV_DATABASE_URL = "SHOP_DATABASE_URL"
ENV_TAX_RATE = "SHOP_TAX_RATE"
ENV_LOG_LEVEL = "SHOP_LOG_LEVEL"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def parse_decimal(value: Any, field: str) -> Decimal:
    """Parse a YAML scalar (str, int or float) as Decimal."""
    if isinstance(value, bool):
        raise ValueError(f"{field}: expected a number, got {value!r}")
    if isinstance(value, float):
        value = str(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValueError(f"{field}: expected a number, got {value!r}") from None


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    url = data.get("url")
    if not url:
        raise ValueError("database.url is required")
    return DatabaseConfig(
        url=str(url),
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 10)),
        max_overflow=int(data.get("max_overflow", 5)),
        busy_timeout=int(data.get("busy_timeout", 15)),
    )


def parse_billing(data: dict[str, Any]) -> BillingConfig:
    currency = str(data.get("currency", "USD"))
    if len(currency) != 3 or not currency.isalpha() or not currency.isupper():
        raise ValueError(f"billing.currency must be an ISO 4217 code, got {currency!r}")

    tax_rate = parse_decimal(data.get("tax_rate", "0"), "billing.tax_rate")
    if not tax_rate.is_finite() or tax_rate < 0 or tax_rate > 100:
        raise ValueError(f"billing.tax_rate must be between 0 and 100, got {tax_rate}")

    prefix = str(data.get("bill_number_prefix", "BILL"))
    if not prefix or not prefix.replace("_", "").isalnum():
        raise ValueError(f"billing.bill_number_prefix must be alphanumeric, got {prefix!r}")

    return BillingConfig(currency=currency, tax_rate=tax_rate, bill_number_prefix=prefix)


def parse_log_level(data: dict[str, Any]) -> str:
    level = str(data.get("level", "INFO")).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"logging.level is not a logging level: {level!r}")
    return level


def apply_env_overrides(data: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    """Return ``data`` with SHOP_* environment values layered on top."""
    overrides: dict[str, Any] = {}
    if env.get(ENV_DATABASE_URL):
        overrides.setdefault("database", {})["url"] = env[ENV_DATABASE_URL]
    if env.get(ENV_TAX_RATE):
        overrides.setdefault("billing", {})["tax_rate"] = env[ENV_TAX_RATE]
    if env.get(ENV_LOG_LEVEL):
        overrides.setdefault("logging", {})["level"] = env[ENV_LOG_LEVEL]
    return _merge(data, overrides)


def load_config(
    path: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> ShopConfig:
    """
    Build a ShopConfig from defaults, an optional YAML file and the
    environment.

    Args:
        path: YAML file layered over the packaged defaults.  Falls back to
            SHOP_CONFIG_PATH; with neither, only the defaults are used.
        env: Environment mapping (defaults to ``os.environ``).
    """
    env = os.environ if env is None else env
    data = load_yaml_file(DEFAULTS_PATH)

    source = path or env.get(ENV_CONFIG_PATH)
    if source:
        data = _merge(data, load_yaml_file(Path(source)))

    data = apply_env_overrides(data, env)

    return ShopConfig(
        database=parse_database(data.get("database") or {}),
        billing=parse_billing(data.get("billing") or {}),
        log_level=parse_log_level(data.get("logging") or {}),
        source=str(source) if source else str(DEFAULTS_PATH),
    )
