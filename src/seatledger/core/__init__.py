"""Seatledger core: configuration."""

from seatledger.core.config import (
    ClockConfig,
    LedgerConfig,
    LimitsConfig,
    PaymentsConfig,
    StorageConfig,
    get_config,
    reset_config,
)

__all__ = [
    "ClockConfig",
    "LedgerConfig",
    "LimitsConfig",
    "PaymentsConfig",
    "StorageConfig",
    "get_config",
    "reset_config",
]
