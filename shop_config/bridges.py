"""
Config -> Kernel Bridges.

Functions that turn a ShopConfig into kernel inputs.  They live here
because the kernel never imports shop_config.

Usage:
    from shop_config import get_active_config
    from shop_config.bridges import build_shop_operations

    ops = build_shop_operations(get_active_config())
"""

from __future__ import annotations

from shop_config.schema import ShopConfig
from shop_kernel.api import ShopOperations
from shop_kernel.db.engine import get_session_factory, init_engine_from_url
from shop_kernel.logging_config import configure_logging
from shop_kernel.services.bill_composer import BillingSettings


def build_billing_settings(config: ShopConfig) -> BillingSettings:
    return BillingSettings(
        currency=config.billing.currency,
        default_tax_rate=config.billing.tax_rate,
        bill_number_prefix=config.billing.bill_number_prefix,
    )


def init_engine(config: ShopConfig):
    """Configure logging at the configured level and initialize the engine."""
    configure_logging(level=config.log_level)
    return init_engine_from_url(
        config.database.url,
        echo=config.database.echo,
        pool_size=config.database.pool_size,
        max_overflow=config.database.max_overflow,
        busy_timeout=config.database.busy_timeout,
    )


def build_shop_operations(config: ShopConfig) -> ShopOperations:
    """Initialize the engine from ``config`` and return a ready facade."""
    init_engine(config)
    return ShopOperations(
        get_session_factory(),
        settings=build_billing_settings(config),
    )
