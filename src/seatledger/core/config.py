"""
Seatledger configuration management.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

CONFIG_DIR = ".seatledger"
CONFIG_FILE = "config.yaml"


@dataclass
class StorageConfig:
    """Ledger storage configuration."""

    backend: str = "json"  # json, sqlite, memory
    path: str = ".seatledger/ledger.json"


@dataclass
class LimitsConfig:
    """Maximum lengths of free-form text fields."""

    name: int = 100
    description: int = 500
    venue: int = 100
    event_type: int = 50
    seat_info: int = 50

    def as_dict(self) -> dict[str, int]:
        return {
            "name": self.name,
            "description": self.description,
            "venue": self.venue,
            "event_type": self.event_type,
            "seat_info": self.seat_info,
        }


@dataclass
class ClockConfig:
    """Logical clock used by the CLI when no --height is given."""

    height: int = 0


@dataclass
class PaymentsConfig:
    """Balance book used by the CLI."""

    balances_path: str = ".seatledger/balances.json"


@dataclass
class LedgerConfig:
    """
    Complete Seatledger configuration.

    Loaded from .seatledger/config.yaml.
    """

    version: str = "1"

    # Account credited with every ticket payment; fixed for the ledger's lifetime
    treasury: str = "treasury"

    storage: StorageConfig = field(default_factory=StorageConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    clock: ClockConfig = field(default_factory=ClockConfig)
    payments: PaymentsConfig = field(default_factory=PaymentsConfig)

    @classmethod
    def from_file(cls, path: Path) -> "LedgerConfig":
        """Load configuration from YAML file."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data.get("seatledger", data))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LedgerConfig":
        """Create config from dictionary."""
        config = cls()

        if "version" in data:
            config.version = str(data["version"])

        if "treasury" in data:
            config.treasury = data["treasury"]

        if "storage" in data:
            s = data["storage"]
            config.storage = StorageConfig(
                backend=s.get("backend", "json"),
                path=s.get("path", ".seatledger/ledger.json"),
            )

        if "limits" in data:
            lim = data["limits"]
            config.limits = LimitsConfig(
                name=lim.get("name", 100),
                description=lim.get("description", 500),
                venue=lim.get("venue", 100),
                event_type=lim.get("event_type", 50),
                seat_info=lim.get("seat_info", 50),
            )

        if "clock" in data:
            config.clock = ClockConfig(height=data["clock"].get("height", 0))

        if "payments" in data:
            config.payments = PaymentsConfig(
                balances_path=data["payments"].get(
                    "balances_path", ".seatledger/balances.json"
                ),
            )

        return config

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "seatledger": {
                "version": self.version,
                "treasury": self.treasury,
                "storage": {
                    "backend": self.storage.backend,
                    "path": self.storage.path,
                },
                "limits": self.limits.as_dict(),
                "clock": {"height": self.clock.height},
                "payments": {"balances_path": self.payments.balances_path},
            }
        }

    def save(self, path: Path) -> None:
        """Save configuration to YAML file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False)


def config_path(project_path: Path) -> Path:
    return project_path / CONFIG_DIR / CONFIG_FILE


# Global config instance
_config: LedgerConfig | None = None


def get_config(project_path: Path | None = None) -> LedgerConfig:
    """
    Get Seatledger configuration.

    Loads from .seatledger/config.yaml in project directory.
    Falls back to defaults if not found.
    """
    global _config

    if _config is not None:
        return _config

    if project_path is None:
        project_path = Path.cwd()

    _config = LedgerConfig.from_file(config_path(project_path))

    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() reloads it."""
    global _config
    _config = None
