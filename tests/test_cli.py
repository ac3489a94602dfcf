"""Tests for earnings-spread CLI commands."""

from pathlib import Path

import pytest
from click.testing import CliRunner

from earnings_spread.cli import cli
from earnings_spread.repository import DailyRepository


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def base_args(tmp_path: Path) -> list:
    """Point the CLI at an empty config and a temporary database."""
    return ["--config", str(tmp_path / "missing.yaml"), "--db", str(tmp_path / "daily.db")]


class TestDayTypeCommand:
    """Tests for 'earnings-spread day-type'."""

    def test_early_closure(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["day-type", "--date", "2025-07-03"])

        assert result.exit_code == 0
        assert "2025-07-03: early_closure" in result.output
        assert "Close: 13:00 ET" in result.output

    def test_normal_day(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["day-type", "--date", "2025-01-15"])

        assert result.exit_code == 0
        assert "normal" in result.output
        assert "Close: 16:00 ET" in result.output

    def test_holiday_shows_next_trading_day(self, runner: CliRunner) -> None:
        """Good Friday is closed; trading resumes the following Monday."""
        result = runner.invoke(cli, ["day-type", "--date", "2025-04-18"])

        assert result.exit_code == 0
        assert "holiday" in result.output
        assert "Holiday: Good Friday" in result.output
        assert "Next trading day: 2025-04-21" in result.output

    def test_weekend(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["day-type", "--date", "2025-01-18"])

        assert "weekend" in result.output
        assert "Holiday:" not in result.output

    def test_invalid_date(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["day-type", "--date", "18/04/2025"])

        assert result.exit_code == 1
        assert "Invalid date" in result.output


class TestMarketScheduleCommand:
    """Tests for 'earnings-spread market-schedule'."""

    def test_daily_schedule(self, runner: CliRunner, base_args: list) -> None:
        result = runner.invoke(cli, base_args + ["market-schedule", "--scan-date", "2025-01-15"])

        assert result.exit_code == 0
        assert '"jobs_scheduled": 9' in result.output
        assert '"day_type": "normal"' in result.output

    def test_holiday_schedules_nothing(self, runner: CliRunner, base_args: list) -> None:
        result = runner.invoke(cli, base_args + ["market-schedule", "--scan-date", "2025-12-25"])

        assert result.exit_code == 0
        assert '"jobs_scheduled": 0' in result.output

    def test_invalid_scan_date(self, runner: CliRunner, base_args: list) -> None:
        result = runner.invoke(cli, base_args + ["market-schedule", "--scan-date", "tomorrow"])

        assert result.exit_code == 1
        assert '"status_code": 400' in result.output

    def test_cleanup_tables(self, runner: CliRunner, base_args: list, tmp_path: Path) -> None:
        db_path = str(tmp_path / "daily.db")
        DailyRepository(db_path)

        result = runner.invoke(cli, base_args + ["market-schedule", "--source", "cleanup-tables"])

        assert result.exit_code == 0
        assert "Daily tables dropped" in result.output

    def test_unknown_source_rejected(self, runner: CliRunner, base_args: list) -> None:
        result = runner.invoke(cli, base_args + ["market-schedule", "--source", "rebalance"])

        assert result.exit_code == 2


class TestConfiguration:
    """Settings and credential errors."""

    def test_phase_without_credentials(
        self, runner: CliRunner, base_args: list, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("ALPACA_API_KEY", raising=False)
        monkeypatch.delenv("ALPACA_SECRET_KEY", raising=False)

        result = runner.invoke(cli, base_args + ["scan-earnings"])

        assert result.exit_code == 1
        assert "ALPACA_API_KEY" in result.output

    def test_invalid_config_file(self, runner: CliRunner, tmp_path: Path) -> None:
        config = tmp_path / "config.yaml"
        config.write_text("workers: [unclosed\n")

        result = runner.invoke(cli, ["--config", str(config), "day-type"])

        assert result.exit_code == 1
        assert "Invalid YAML" in result.output
