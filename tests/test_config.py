"""Unit tests for configuration module."""

import pytest

from earnings_spread.config import AlpacaConfig, FinnhubConfig, RetryPolicy, StrategySettings
from earnings_spread.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in (
        "ALPACA_API_KEY",
        "ALPACA_SECRET_KEY",
        "ALPACA_PAPER_TRADING",
        "FINNHUB_API_KEY",
        "EARNINGS_SPREAD_DB_PATH",
        "EARNINGS_SPREAD_MAX_WORKERS",
    ):
        monkeypatch.delenv(var, raising=False)


class TestRetryPolicy:
    """Test suite for RetryPolicy."""

    def test_defaults(self):
        """Test the default policy retries a 429 once after one second."""
        policy = RetryPolicy()

        assert policy.max_attempts == 2
        assert policy.delay_for(0) == 1.0

    def test_exponential_backoff(self):
        policy = RetryPolicy(max_attempts=4, delay=0.5, backoff=2.0)

        assert [policy.delay_for(n) for n in range(3)] == [0.5, 1.0, 2.0]

    @pytest.mark.parametrize(
        "kwargs,message",
        [
            ({"max_attempts": 0}, "max_attempts"),
            ({"delay": -1}, "delay"),
            ({"backoff": 0.5}, "backoff"),
        ],
    )
    def test_invalid_values(self, kwargs, message):
        with pytest.raises(ValueError, match=message):
            RetryPolicy(**kwargs)


class TestAlpacaConfig:
    """Test suite for AlpacaConfig."""

    def test_paper_by_default(self):
        config = AlpacaConfig(api_key="key", secret_key="secret")

        assert config.paper is True
        assert config.trading_url == "https://paper-api.alpaca.markets/v2"

    def test_live_url(self):
        config = AlpacaConfig(api_key="key", secret_key="secret", paper=False)

        assert config.trading_url == "https://api.alpaca.markets/v2"

    def test_empty_credentials(self):
        """Test that empty credentials raise ValueError."""
        with pytest.raises(ValueError, match="cannot be empty"):
            AlpacaConfig(api_key="key", secret_key="")

    def test_invalid_timeout(self):
        with pytest.raises(ValueError, match="Timeout must be positive"):
            AlpacaConfig(api_key="key", secret_key="secret", timeout=0)

    def test_from_env(self, monkeypatch):
        """Test loading credentials and trading mode from the environment."""
        monkeypatch.setenv("ALPACA_API_KEY", "env_key")
        monkeypatch.setenv("ALPACA_SECRET_KEY", "env_secret")
        monkeypatch.setenv("ALPACA_PAPER_TRADING", "false")

        config = AlpacaConfig.from_env()

        assert config.api_key == "env_key"
        assert config.secret_key == "env_secret"
        assert config.paper is False

    def test_from_env_missing(self):
        with pytest.raises(ValueError, match="ALPACA_API_KEY"):
            AlpacaConfig.from_env()


class TestFinnhubConfig:
    """Test suite for FinnhubConfig class."""

    def test_config_initialization_valid(self):
        config = FinnhubConfig(api_key="test_key_12345")

        assert config.base_url == "https://finnhub.io/api/v1"
        assert config.timeout == 10

    def test_config_invalid_retry_delay(self):
        with pytest.raises(ValueError, match="Retry delay must be positive"):
            FinnhubConfig(api_key="test_key", retry_delay=0)

    def test_config_from_env_missing_variable(self):
        """Test that the error message points at the registration page."""
        with pytest.raises(ValueError, match="https://finnhub.io/register"):
            FinnhubConfig.from_env()


class TestStrategySettings:
    """Test suite for StrategySettings."""

    def test_missing_file_uses_defaults(self, tmp_path):
        settings = StrategySettings.load_from_file(tmp_path / "missing.yaml")

        assert settings.max_workers == 10
        assert settings.retry_policy.max_attempts == 2
        assert settings.drift_threshold == 0.0005
        assert settings.exit_discount == 0.97
        assert (settings.min_entry_size, settings.max_entry_size) == (0.01, 0.20)

    def test_load_from_yaml(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "storage:\n"
            "  db_path: /tmp/spread.db\n"
            "workers:\n"
            "  max_workers: 4\n"
            "retry:\n"
            "  max_attempts: 3\n"
            "  delay: 0.5\n"
            "monitor:\n"
            "  exit_discount: 0.95\n"
        )

        settings = StrategySettings.load_from_file(config_file)

        assert settings.db_path == "/tmp/spread.db"
        assert settings.max_workers == 4
        assert settings.retry_policy.max_attempts == 3
        assert settings.retry_policy.delay == 0.5
        assert settings.exit_discount == 0.95

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        """Test environment variables take precedence over file values."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("workers:\n  max_workers: 4\n")
        monkeypatch.setenv("EARNINGS_SPREAD_MAX_WORKERS", "7")
        monkeypatch.setenv("EARNINGS_SPREAD_DB_PATH", "/tmp/env.db")

        settings = StrategySettings.load_from_file(config_file)

        assert settings.max_workers == 7
        assert settings.db_path == "/tmp/env.db"

    def test_invalid_yaml(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("workers: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            StrategySettings.load_from_file(config_file)

    def test_non_mapping_file(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("- just\n- a list\n")

        with pytest.raises(ConfigurationError, match="mapping"):
            StrategySettings.load_from_file(config_file)

    def test_invalid_values(self):
        with pytest.raises(ConfigurationError, match="max_workers"):
            StrategySettings(max_workers=0)

        with pytest.raises(ConfigurationError, match="exit_discount"):
            StrategySettings(exit_discount=1.5)

        with pytest.raises(ConfigurationError, match="Invalid configuration value"):
            StrategySettings.merge_with_defaults({"retry": {"max_attempts": 0}})
