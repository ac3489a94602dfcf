"""
Click CLI for the earnings calendar spread strategy.

Each phase command runs one phase for a scan date and prints its JSON
result. The exit code is 1 when the phase reports an error.
"""

import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional

import click

from .config import StrategySettings
from .exceptions import ConfigurationError
from .market_calendar import MarketCalendarService, today_eastern
from .phases import (
    PhaseContext,
    run_filter_candidates,
    run_initiate_exit_trades,
    run_initiate_trades,
    run_market_schedule,
    run_monitor_trades,
    run_scan_earnings,
)
from .repository import DailyRepository

logger = logging.getLogger(__name__)

SOURCE_CHOICES = ["daily-schedule", "create-tables", "cleanup-tables"]


def _print_error(message: str) -> None:
    """Print error message to stderr."""
    click.secho(f"Error: {message}", fg="red", err=True)


def _emit(result: Dict[str, Any]) -> None:
    """Print a phase result as JSON and exit 1 on error."""
    click.echo(json.dumps(result, indent=2, default=str))
    if result.get("status") == "error":
        sys.exit(1)


def _get_context(ctx: click.Context, broker: bool = True) -> PhaseContext:
    """
    Build the phase context once per invocation.

    Commands that only touch the calendar or the daily tables pass
    broker=False and never need credentials.
    """
    settings: StrategySettings = ctx.obj["settings"]
    if not broker:
        return PhaseContext(client=None, repository=DailyRepository(settings.db_path), settings=settings)

    if ctx.obj.get("context") is None:
        try:
            ctx.obj["context"] = PhaseContext.from_settings(settings)
        except ConfigurationError as e:
            _print_error(str(e))
            sys.exit(1)
    return ctx.obj["context"]


def _payload(scan_date: Optional[str]) -> Dict[str, Any]:
    return {"scanDate": scan_date} if scan_date else {}


scan_date_option = click.option(
    "--scan-date", default=None, help="Scan date (YYYY-MM-DD); defaults to today in New York"
)


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="YAML settings file (default ~/.earnings_spread/config.yaml)",
)
@click.option("--db", default=None, help="Database file path", envvar="EARNINGS_SPREAD_DB_PATH")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], db: Optional[str], verbose: bool) -> None:
    """
    Earnings Spread - trade calendar spreads across earnings announcements.

    Scans the earnings calendar, filters candidates, opens spreads before the
    close, monitors the orders, and closes the spreads the next morning.
    """
    ctx.ensure_object(dict)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        settings = StrategySettings.load_from_file(config_path)
    except ConfigurationError as e:
        _print_error(str(e))
        sys.exit(1)
    if db:
        settings.db_path = db

    ctx.obj["settings"] = settings
    ctx.obj["verbose"] = verbose
    ctx.obj["context"] = None


@cli.command("scan-earnings")
@scan_date_option
@click.pass_context
def scan_earnings(ctx: click.Context, scan_date: Optional[str]) -> None:
    """
    Store tonight's after-close and tomorrow's before-open earnings.

    Example: earnings-spread scan-earnings --scan-date 2025-01-30
    """
    _emit(run_scan_earnings(_payload(scan_date), _get_context(ctx)))


@cli.command("filter")
@scan_date_option
@click.pass_context
def filter_candidates(ctx: click.Context, scan_date: Optional[str]) -> None:
    """Run the gatekeeper filters over the scanned tickers."""
    _emit(run_filter_candidates(_payload(scan_date), _get_context(ctx)))


@cli.command("initiate-trades")
@scan_date_option
@click.pass_context
def initiate_trades(ctx: click.Context, scan_date: Optional[str]) -> None:
    """Open calendar spreads for approved candidates."""
    _emit(run_initiate_trades(_payload(scan_date), _get_context(ctx)))


@cli.command("initiate-exits")
@scan_date_option
@click.pass_context
def initiate_exits(ctx: click.Context, scan_date: Optional[str]) -> None:
    """Close every held calendar spread."""
    _emit(run_initiate_exit_trades(_payload(scan_date), _get_context(ctx)))


@cli.command("monitor")
@scan_date_option
@click.pass_context
def monitor(ctx: click.Context, scan_date: Optional[str]) -> None:
    """Run one lifecycle tick over the open orders."""
    _emit(run_monitor_trades(_payload(scan_date), _get_context(ctx)))


@cli.command("market-schedule")
@scan_date_option
@click.option(
    "--source",
    default="daily-schedule",
    type=click.Choice(SOURCE_CHOICES),
    help="Schedule event to handle",
)
@click.pass_context
def market_schedule(ctx: click.Context, scan_date: Optional[str], source: str) -> None:
    """
    Show the day's job plan, or create/drop the daily tables.

    \b
    Examples:
      earnings-spread market-schedule --scan-date 2025-11-28
      earnings-spread market-schedule --source cleanup-tables
    """
    payload = {**_payload(scan_date), "source": source}
    _emit(run_market_schedule(payload, _get_context(ctx, broker=False)))


@cli.command("day-type")
@click.option("--date", "day", default=None, help="Date (YYYY-MM-DD); defaults to today")
def day_type(day: Optional[str]) -> None:
    """
    Classify a date as normal, early_closure, holiday or weekend.

    Example: earnings-spread day-type --date 2025-07-03
    """
    try:
        target = date.fromisoformat(day) if day else today_eastern()
    except ValueError:
        _print_error(f"Invalid date: {day} (expected YYYY-MM-DD)")
        sys.exit(1)

    calendar = MarketCalendarService()
    result = calendar.day_type(target)
    close = calendar.close_time(target)
    click.echo(f"{target.isoformat()}: {result.value}")
    if close:
        click.echo(f"Close: {close.strftime('%H:%M')} ET")
    else:
        holiday = calendar.holiday_name(target)
        if holiday:
            click.echo(f"Holiday: {holiday}")
        click.echo(f"Next trading day: {calendar.next_trading_day(target).isoformat()}")


@cli.command("run-scheduler")
@click.pass_context
def run_scheduler(ctx: click.Context) -> None:
    """Run the phase scheduler in the foreground until interrupted."""
    from .scheduler import StrategyScheduler

    scheduler = StrategyScheduler(_get_context(ctx), blocking=True)
    click.echo("Starting scheduler (Ctrl+C to stop)")
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        click.echo("Stopping scheduler")
        scheduler.shutdown(wait=False)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
