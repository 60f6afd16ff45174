"""
ShopConfig schema.

The parsed, validated shop configuration.  Built by loader.load_config from
YAML plus environment overrides; converted into kernel inputs by bridges.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings for init_engine_from_url."""

    url: str
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 5
    busy_timeout: int = 15


@dataclass(frozen=True)
class BillingConfig:
    """Billing defaults."""

    currency: str = "USD"
    tax_rate: Decimal = Decimal("0")  # percent
    bill_number_prefix: str = "BILL"


@dataclass(frozen=True)
class ShopConfig:
    """Complete shop configuration."""

    database: DatabaseConfig
    billing: BillingConfig = field(default_factory=BillingConfig)
    log_level: str = "INFO"
    source: str | None = None  # file the config was read from
