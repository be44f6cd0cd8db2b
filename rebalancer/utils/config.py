"""Configuration management for the portfolio rebalancer.

This module provides YAML configuration loading and access, credential
loading from ``.env``, and the explicit RebalanceConfig object that is built
once at startup and passed through the pipeline.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from rebalancer.portfolio.allocation_model import AllocationModel
from rebalancer.portfolio.drift import DriftPolicy
from rebalancer.utils.exceptions import ConfigurationError

ROOT_DIR = Path(__file__).parent.parent.parent

_TRUE_VALUES = {"true", "yes", "on", "1"}
_FALSE_VALUES = {"false", "no", "off", "0"}


class Config:
    """Simple configuration loader and accessor.

    Loads YAML configuration files and provides dict-like access to settings.

    Example:
        >>> config = Config.from_file("config/default.yaml")
        >>> currency = config.get("settlement_currency", "rub")
    """

    def __init__(self, config_dict: dict[str, Any]) -> None:
        """Initialize with configuration dictionary.

        Args:
            config_dict: Configuration data as nested dictionary
        """
        self._config = config_dict

    @classmethod
    def from_file(cls, filepath: str | Path) -> "Config":
        """Load configuration from YAML file.

        Args:
            filepath: Path to YAML configuration file

        Returns:
            Config instance with loaded configuration

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {filepath}")

        with open(path, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f)

        if config_dict is None:
            config_dict = {}

        return cls(config_dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Supports nested keys using dot notation (e.g., "tinkoff.sandbox").

        Args:
            key: Configuration key (supports dot notation for nested keys)
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        value = self._config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        return value

    def __getitem__(self, key: str) -> Any:
        """Get configuration value using bracket notation.

        Raises:
            KeyError: If key not found
        """
        value = self.get(key)
        if value is None:
            raise KeyError(f"Configuration key not found: {key}")
        return value

    def to_dict(self) -> dict[str, Any]:
        """Get the full configuration as dictionary."""
        return self._config.copy()


def load_config(filepath: str | Path = None) -> Config:
    """Helper function to load configuration.

    Args:
        filepath: Path to YAML configuration file. If None, uses default path.

    Returns:
        Config instance
    """
    if filepath is None:
        filepath = ROOT_DIR / "config" / "default.yaml"
    return Config.from_file(filepath)


def load_tinkoff_credentials(env_file: str | Path = None) -> dict[str, str]:
    """Load the Tinkoff Invest API token.

    Values already present in the environment take precedence over the
    ``.env`` file.

    Args:
        env_file: Path to .env file. If None, uses .env in the project root.

    Returns:
        Credentials dict with key ``token``

    Raises:
        ConfigurationError: If TINKOFF_TOKEN is not set
    """
    if env_file is None:
        env_file = ROOT_DIR / ".env"

    if Path(env_file).exists():
        load_dotenv(env_file)

    token = os.getenv("TINKOFF_TOKEN")
    if not token:
        raise ConfigurationError(
            "Missing required environment variable: TINKOFF_TOKEN. "
            "Please copy .env.example to .env and fill in your token."
        )

    return {"token": token}


def _to_bool(value: Any, key: str) -> bool:
    """Parse a flag written as a bool, 0/1 or a word such as "yes" or "false"."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_VALUES:
            return True
        if word in _FALSE_VALUES:
            return False
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ConfigurationError(f"{key} must be a boolean, got {value!r}")


@dataclass(frozen=True)
class RebalanceConfig:
    """Settings for one rebalancing run.

    Attributes:
        allocation_model: Validated target allocation (with manual delta)
        settlement_currency: Currency every value must be priced in
        drift_policy: Thresholds for flagging drift
        snapshot_path: YAML snapshot file for offline runs
        sandbox: Use the brokerage sandbox environment
        account_id: Brokerage account; first open account when None
        request_timeout: HTTP timeout in seconds
        log_level: Logging level name
    """

    allocation_model: AllocationModel
    settlement_currency: str = "rub"
    drift_policy: DriftPolicy = field(default_factory=DriftPolicy)
    snapshot_path: Optional[Path] = None
    sandbox: bool = False
    account_id: Optional[str] = None
    request_timeout: float = 30.0
    log_level: str = "INFO"

    @classmethod
    def from_config(cls, config: Config) -> "RebalanceConfig":
        """Build run settings from a loaded YAML config.

        Raises:
            ConfigurationError: If the allocation or drift sections are invalid
        """
        currency = str(config.get("settlement_currency", "rub")).lower()

        snapshot_path = config.get("snapshot.path")
        account_id = config.get("tinkoff.account_id")

        try:
            timeout = float(config.get("tinkoff.timeout", 30))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid tinkoff.timeout: {e}") from e

        return cls(
            allocation_model=AllocationModel.from_config(config.get("allocation")),
            settlement_currency=currency,
            drift_policy=DriftPolicy.from_config(config.get("drift")),
            snapshot_path=Path(snapshot_path) if snapshot_path else None,
            sandbox=_to_bool(config.get("tinkoff.sandbox", False), "tinkoff.sandbox"),
            account_id=str(account_id) if account_id else None,
            request_timeout=timeout,
            log_level=str(config.get("logging.level", "INFO")),
        )

    @classmethod
    def from_file(cls, filepath: str | Path = None) -> "RebalanceConfig":
        return cls.from_config(load_config(filepath))
