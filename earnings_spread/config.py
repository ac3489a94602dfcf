"""Configuration management for the earnings spread strategy.

Provides API credential configuration (Alpaca, Finnhub), the rate-limit
retry policy, and strategy settings loaded from YAML with environment
variable overrides.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from . import constants
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class RetryPolicy:
    """
    Retry policy for HTTP 429 (rate limit) responses.

    Attributes:
        max_attempts: Total attempts including the first request
        delay: Delay before the first retry (seconds)
        backoff: Multiplier applied to the delay after each retry
    """

    max_attempts: int = 2
    delay: float = 1.0
    backoff: float = 2.0

    def __post_init__(self) -> None:
        """Validate policy values."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay < 0:
            raise ValueError("delay cannot be negative")
        if self.backoff < 1.0:
            raise ValueError("backoff must be >= 1.0")

    def delay_for(self, retry_number: int) -> float:
        """Delay before the given retry (0-indexed)."""
        return self.delay * (self.backoff ** retry_number)


@dataclass
class AlpacaConfig:
    """
    Configuration for the Alpaca trading and market data client.

    Attributes:
        api_key: Alpaca API key id
        secret_key: Alpaca API secret key
        paper: Use the paper trading endpoint
        timeout: Request timeout in seconds
        max_retries: Retries for transient (5xx/network) errors
        retry_delay: Base delay for transient error retries (seconds)
        rate_limit_policy: Retry policy for 429 responses
    """

    api_key: str
    secret_key: str
    paper: bool = True
    timeout: int = 30
    max_retries: int = 3
    retry_delay: float = 1.0
    rate_limit_policy: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.api_key or not self.secret_key:
            raise ValueError("Alpaca API key and secret key cannot be empty")

        if self.timeout <= 0:
            raise ValueError("Timeout must be positive")

        if self.max_retries < 0:
            raise ValueError("Max retries cannot be negative")

    @property
    def trading_url(self) -> str:
        """Trading API base URL for the configured environment."""
        if self.paper:
            return "https://paper-api.alpaca.markets/v2"
        return "https://api.alpaca.markets/v2"

    @classmethod
    def from_env(
        cls,
        api_key_var: str = "ALPACA_API_KEY",
        secret_key_var: str = "ALPACA_SECRET_KEY",
    ) -> "AlpacaConfig":
        """
        Load configuration from environment variables.

        Args:
            api_key_var: Name of environment variable containing the key id
            secret_key_var: Name of environment variable containing the secret

        Returns:
            AlpacaConfig instance

        Raises:
            ValueError: If either credential variable is not set
        """
        api_key = os.getenv(api_key_var)
        secret_key = os.getenv(secret_key_var)
        if not api_key or not secret_key:
            raise ValueError(
                f"{api_key_var} and {secret_key_var} environment variables must be set"
            )

        paper = os.getenv("ALPACA_PAPER_TRADING", "true").lower() != "false"
        return cls(api_key=api_key, secret_key=secret_key, paper=paper)


@dataclass
class FinnhubConfig:
    """
    Configuration for the Finnhub earnings data client.

    Attributes:
        api_key: Finnhub API key for authentication
        base_url: Base URL for Finnhub API
        timeout: Request timeout in seconds
        max_retries: Maximum number of retry attempts for failed requests
        retry_delay: Initial delay between retries (seconds)
    """

    api_key: str
    base_url: str = "https://finnhub.io/api/v1"
    timeout: int = 10
    max_retries: int = 3
    retry_delay: float = 1.0

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.api_key:
            raise ValueError("API key cannot be empty")

        if self.timeout <= 0:
            raise ValueError("Timeout must be positive")

        if self.max_retries < 0:
            raise ValueError("Max retries cannot be negative")

        if self.retry_delay <= 0:
            raise ValueError("Retry delay must be positive")

    @classmethod
    def from_env(cls, api_key_var: str = "FINNHUB_API_KEY") -> "FinnhubConfig":
        """
        Load configuration from environment variables.

        Raises:
            ValueError: If API key environment variable is not set
        """
        api_key = os.getenv(api_key_var)
        if not api_key:
            raise ValueError(
                f"{api_key_var} environment variable not set. "
                f"Get your API key from https://finnhub.io/register"
            )

        return cls(api_key=api_key)


class StrategySettings:
    """Runtime settings for the strategy phases.

    Attributes:
        db_path: SQLite file holding the ephemeral daily tables
        max_workers: Bounded worker pool size
        retry_policy: Retry policy for rate-limited requests
        drift_threshold: Relative price drift that triggers a re-price
        exit_discount: Multiplier for escalated exit limit prices
        min_entry_size: Smallest candidate position size traded
        max_entry_size: Largest candidate position size traded
    """

    def __init__(
        self,
        db_path: str = "~/.earnings_spread/daily.db",
        max_workers: int = constants.DEFAULT_MAX_WORKERS,
        retry_policy: Optional[RetryPolicy] = None,
        drift_threshold: float = constants.PRICE_DRIFT_THRESHOLD,
        exit_discount: float = constants.EXIT_DISCOUNT,
        min_entry_size: float = constants.MIN_ENTRY_POSITION_SIZE,
        max_entry_size: float = constants.MAX_ENTRY_POSITION_SIZE,
    ):
        self.db_path = db_path
        self.max_workers = max_workers
        self.retry_policy = retry_policy or RetryPolicy()
        self.drift_threshold = drift_threshold
        self.exit_discount = exit_discount
        self.min_entry_size = min_entry_size
        self.max_entry_size = max_entry_size

        self._validate()

    def _validate(self) -> None:
        """Validate configuration values.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if self.max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1")

        if self.drift_threshold <= 0:
            raise ConfigurationError("drift_threshold must be positive")

        if not 0 < self.exit_discount <= 1:
            raise ConfigurationError("exit_discount must be in (0, 1]")

        if not 0 <= self.min_entry_size <= self.max_entry_size <= 1:
            raise ConfigurationError(
                "entry size band must satisfy 0 <= min_entry_size <= max_entry_size <= 1"
            )

    @classmethod
    def get_default_config_path(cls) -> Path:
        """Default configuration file path (~/.earnings_spread/config.yaml)."""
        return Path.home() / ".earnings_spread" / "config.yaml"

    @classmethod
    def load_from_file(cls, path: Optional[Path] = None) -> "StrategySettings":
        """Load settings from a YAML file.

        A missing file yields default settings. Environment variables
        override values from the file.

        Args:
            path: Optional path to config file

        Returns:
            StrategySettings instance

        Raises:
            ConfigurationError: If the file is not valid YAML or holds bad values
        """
        config_path = path or cls.get_default_config_path()
        config_dict: dict[str, Any] = {}

        if config_path.exists():
            try:
                with open(config_path) as f:
                    file_config = yaml.safe_load(f)
                    if file_config:
                        config_dict = file_config
                logger.debug(f"Loaded configuration from {config_path}")
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in configuration file: {e}") from e
            except OSError as e:
                raise ConfigurationError(f"Failed to load configuration file: {e}") from e
        else:
            logger.debug(f"Configuration file not found at {config_path}, using defaults")

        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration file must contain a mapping")

        return cls.merge_with_defaults(config_dict)

    @classmethod
    def merge_with_defaults(cls, config_dict: dict[str, Any]) -> "StrategySettings":
        """Merge a configuration mapping with defaults and environment variables.

        Precedence (highest first): environment variables, file values, defaults.

        Example:
            >>> settings = StrategySettings.merge_with_defaults({
            ...     "workers": {"max_workers": 4},
            ...     "retry": {"max_attempts": 3},
            ... })
        """
        storage = config_dict.get("storage", {}) or {}
        workers = config_dict.get("workers", {}) or {}
        retry = config_dict.get("retry", {}) or {}
        monitor = config_dict.get("monitor", {}) or {}
        entry = config_dict.get("entry", {}) or {}

        db_path = os.getenv(
            "EARNINGS_SPREAD_DB_PATH",
            storage.get("db_path", "~/.earnings_spread/daily.db"),
        )

        try:
            max_workers = int(
                os.getenv(
                    "EARNINGS_SPREAD_MAX_WORKERS",
                    workers.get("max_workers", constants.DEFAULT_MAX_WORKERS),
                )
            )
            retry_policy = RetryPolicy(
                max_attempts=int(retry.get("max_attempts", 2)),
                delay=float(retry.get("delay", 1.0)),
                backoff=float(retry.get("backoff", 2.0)),
            )
            return cls(
                db_path=db_path,
                max_workers=max_workers,
                retry_policy=retry_policy,
                drift_threshold=float(
                    monitor.get("drift_threshold", constants.PRICE_DRIFT_THRESHOLD)
                ),
                exit_discount=float(monitor.get("exit_discount", constants.EXIT_DISCOUNT)),
                min_entry_size=float(
                    entry.get("min_position_size", constants.MIN_ENTRY_POSITION_SIZE)
                ),
                max_entry_size=float(
                    entry.get("max_position_size", constants.MAX_ENTRY_POSITION_SIZE)
                ),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration value: {e}") from e
