"""
shop_config -- single public entrypoint for shop configuration.

Responsibility:
    ``get_active_config()`` is the way runtime code obtains configuration.
    Nothing else reads the YAML files or SHOP_* environment variables.

Architecture position:
    Sits above ``shop_kernel``.  The kernel never imports shop_config;
    ``shop_config.bridges`` converts a ShopConfig into kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- SHOP_CONFIG_PATH points at a missing file.
    - ``ValueError`` -- invalid configuration values.
"""

from __future__ import annotations

import logging
import threading

from shop_config.loader import load_config
from shop_config.schema import BillingConfig, DatabaseConfig, ShopConfig

_logger = logging.getLogger("shop_kernel.config")

_active: ShopConfig | None = None
_lock = threading.Lock()


def get_active_config(reload: bool = False) -> ShopConfig:
    """
    Return the process-wide ShopConfig, loading it on first use.

    Args:
        reload: Discard the cached config and load again.
    """
    global _active
    with _lock:
        if _active is None or reload:
            _active = load_config()
            _logger.info(
                "shop_config_loaded",
                extra={
                    "source": _active.source,
                    "currency": _active.billing.currency,
                    "tax_rate": str(_active.billing.tax_rate),
                    "dialect": _active.database.url.split(":", 1)[0],
                },
            )
        return _active


def clear_active_config() -> None:
    """Drop the cached config. FOR TESTING ONLY."""
    global _active
    with _lock:
        _active = None


__all__ = [
    "BillingConfig",
    "DatabaseConfig",
    "ShopConfig",
    "clear_active_config",
    "get_active_config",
    "load_config",
]
