"""
Collectible Ledger Configuration

Supports a development network and mainnet with separate rules.

Issuance constants (price, per-account cap, collection size) are fixed when a
ledger is deployed; these settings only provide the values used by
``Chain.deploy_collectible`` when the deployer does not override them.

NOTICE:
- On mainnet every issuance constant MUST be set explicitly through the
  environment; the development defaults are refused.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping

logger = logging.getLogger(__name__)


class NetworkType(Enum):
    DEVELOPMENT = "development"
    MAINNET = "mainnet"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


# 0.05 ether
DEFAULT_PRICE_WEI = 50_000_000_000_000_000
DEFAULT_MAX_MINTS_PER_USER = 5
DEFAULT_COLLECTION_SIZE = 26
DEFAULT_NAME = "Collectible"
DEFAULT_SYMBOL = "CLT"

# Get network type from environment variable
NETWORK = os.getenv("COLLECTIBLE_NETWORK", "development")  # Default to development for safety


def _parse_network(value: str) -> NetworkType:
    try:
        return NetworkType(value.strip().lower())
    except ValueError:
        raise ConfigurationError(
            f"COLLECTIBLE_NETWORK must be one of "
            f"{', '.join(n.value for n in NetworkType)}, got {value!r}"
        )


def _get_int_setting(
    environ: Mapping[str, str],
    env_var: str,
    default: int,
    network: NetworkType,
) -> int:
    """Read an integer setting, with mainnet enforcement.

    On mainnet, missing values raise ConfigurationError.
    On the development network, missing values fall back to ``default``.
    """
    raw = environ.get(env_var, "").strip()
    if not raw:
        if network is NetworkType.MAINNET:
            raise ConfigurationError(
                f"CRITICAL: {env_var} environment variable required for mainnet."
            )
        return default
    try:
        return int(raw.replace("_", ""))
    except ValueError:
        raise ConfigurationError(f"{env_var} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class LedgerConfig:
    """Deploy-time settings for a collectible ledger."""

    network: NetworkType = NetworkType.DEVELOPMENT
    name: str = DEFAULT_NAME
    symbol: str = DEFAULT_SYMBOL
    price_wei: int = DEFAULT_PRICE_WEI
    max_mints_per_user: int = DEFAULT_MAX_MINTS_PER_USER
    collection_size: int = DEFAULT_COLLECTION_SIZE
    log_level: str = "DEBUG"
    log_file: str = ""

    @property
    def is_development(self) -> bool:
        return self.network is NetworkType.DEVELOPMENT


def validate_config(config: LedgerConfig) -> LedgerConfig:
    """
    Reject settings that would produce an unusable ledger.

    Raises:
        ConfigurationError: If any issuance constant is out of range
    """
    if config.price_wei < 0:
        raise ConfigurationError("price_wei must not be negative")
    if config.max_mints_per_user <= 0:
        raise ConfigurationError("max_mints_per_user must be positive")
    if config.collection_size <= 0:
        raise ConfigurationError("collection_size must be positive")
    if config.max_mints_per_user > config.collection_size:
        raise ConfigurationError(
            f"max_mints_per_user ({config.max_mints_per_user}) exceeds "
            f"collection_size ({config.collection_size})"
        )
    if not config.name or not config.symbol:
        raise ConfigurationError("collection name and symbol cannot be empty")
    if not isinstance(logging.getLevelName(config.log_level.upper()), int):
        raise ConfigurationError(f"unknown log level {config.log_level!r}")
    return config


def load_config(environ: Mapping[str, str] | None = None) -> LedgerConfig:
    """
    Build a validated LedgerConfig from environment variables.

    Args:
        environ: Mapping to read from (defaults to ``os.environ``)

    Returns:
        Validated configuration
    """
    environ = os.environ if environ is None else environ
    network = _parse_network(environ.get("COLLECTIBLE_NETWORK", NETWORK))

    config = LedgerConfig(
        network=network,
        name=environ.get("COLLECTIBLE_NAME", DEFAULT_NAME).strip(),
        symbol=environ.get("COLLECTIBLE_SYMBOL", DEFAULT_SYMBOL).strip(),
        price_wei=_get_int_setting(environ, "COLLECTIBLE_PRICE_WEI", DEFAULT_PRICE_WEI, network),
        max_mints_per_user=_get_int_setting(
            environ, "COLLECTIBLE_MAX_MINTS_PER_USER", DEFAULT_MAX_MINTS_PER_USER, network
        ),
        collection_size=_get_int_setting(
            environ, "COLLECTIBLE_COLLECTION_SIZE", DEFAULT_COLLECTION_SIZE, network
        ),
        log_level=environ.get(
            "COLLECTIBLE_LOG_LEVEL",
            "DEBUG" if network is NetworkType.DEVELOPMENT else "INFO",
        ).strip().upper(),
        log_file=environ.get("COLLECTIBLE_LOG_FILE", "").strip(),
    )

    logger.debug(
        "Ledger configuration loaded",
        extra={
            "event": "config.loaded",
            "network": network.value,
            "collection_size": config.collection_size,
        },
    )
    return validate_config(config)
