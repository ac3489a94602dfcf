"""Shared plumbing for the strategy phases.

A phase is a stateless unit of work: `run_<phase>(payload, context)`
returns a structured result. Everything it talks to (brokerage, earnings
data, daily tables, settings, calendar, clock) lives on the PhaseContext.
"""

import functools
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, Optional

import requests

from earnings_spread.alpaca import AlpacaClient
from earnings_spread.config import AlpacaConfig, FinnhubConfig, StrategySettings
from earnings_spread.exceptions import (
    AlpacaAuthenticationError,
    ConfigurationError,
    EarningsSpreadError,
    InvalidPayloadError,
)
from earnings_spread.finnhub_client import FinnhubClient
from earnings_spread.market_calendar import EASTERN, MarketCalendarService
from earnings_spread.repository import DailyRepository
from earnings_spread.results import error_result, skipped_result

logger = logging.getLogger(__name__)

SCAN_DATE_KEYS = ("scanDate", "scan_date")


def _eastern_now() -> datetime:
    return datetime.now(EASTERN)


@dataclass
class PhaseContext:
    """
    Collaborators shared by every phase.

    Attributes:
        client: AlpacaClient for trading and market data
        repository: DailyRepository holding the ephemeral tables
        settings: Runtime settings
        earnings_client: FinnhubClient (None when no Finnhub key is configured)
        calendar: Market calendar
        now: Clock returning an aware datetime
    """

    client: Any
    repository: DailyRepository
    settings: StrategySettings = field(default_factory=StrategySettings)
    earnings_client: Optional[Any] = None
    calendar: MarketCalendarService = field(default_factory=MarketCalendarService)
    now: Callable[[], datetime] = _eastern_now

    def today(self) -> date:
        """Current date in America/New_York."""
        return self.now().astimezone(EASTERN).date()

    @classmethod
    def from_settings(cls, settings: StrategySettings) -> "PhaseContext":
        """
        Build a context from settings and environment credentials.

        Raises:
            ConfigurationError: If Alpaca credentials are missing or invalid
        """
        try:
            alpaca_config = AlpacaConfig.from_env()
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        alpaca_config.rate_limit_policy = settings.retry_policy

        earnings_client = None
        try:
            earnings_client = FinnhubClient(FinnhubConfig.from_env())
        except ValueError as e:
            logger.warning(f"Finnhub not configured: {e}")

        return cls(
            client=AlpacaClient(alpaca_config),
            repository=DailyRepository(settings.db_path),
            settings=settings,
            earnings_client=earnings_client,
        )


def resolve_scan_date(payload: Optional[Dict[str, Any]], today: date) -> date:
    """
    Scan date from a `{scanDate?: "YYYY-MM-DD"}` payload.

    Raises:
        InvalidPayloadError: If scanDate is present but not an ISO date
    """
    payload = payload or {}
    raw = next((payload[key] for key in SCAN_DATE_KEYS if payload.get(key)), None)
    if raw is None:
        return today
    if isinstance(raw, date):
        return raw
    try:
        return datetime.strptime(str(raw), "%Y-%m-%d").date()
    except ValueError as e:
        raise InvalidPayloadError(f"scanDate must be YYYY-MM-DD, got {raw!r}") from e


def market_gate(context: PhaseContext) -> Optional[Dict[str, Any]]:
    """
    Check the brokerage clock.

    Returns:
        A skipped result when the market is closed or its status cannot be
        determined, otherwise None
    """
    try:
        clock = context.client.get_clock()
    except AlpacaAuthenticationError as e:
        logger.error(f"Brokerage rejected credentials: {e}")
        return skipped_result("credentials_rejected", message=str(e))
    except (EarningsSpreadError, requests.exceptions.RequestException) as e:
        logger.error(f"Could not read market clock: {e}", exc_info=True)
        return skipped_result("market_status_unknown", message=str(e))

    if not clock.is_open:
        return skipped_result("market_closed")
    return None


def phase(name: str) -> Callable:
    """Decorator that logs a phase run and turns fatal errors into error results.

    Example:
        >>> @phase("scan_earnings")
        >>> def run_scan_earnings(payload, context):
        >>>     ...
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(payload: Optional[Dict[str, Any]], context: PhaseContext, **kwargs):
            started = time.monotonic()
            logger.info(f"Starting {name} with payload {payload or {}}")
            try:
                result = func(payload or {}, context, **kwargs)
            except InvalidPayloadError as e:
                logger.error(f"Error in {name}: {e}")
                return error_result(f"Error in {name}: {e}", status_code=400)
            except (EarningsSpreadError, requests.exceptions.RequestException) as e:
                logger.error(f"Error in {name}: {e}", exc_info=True)
                return error_result(f"Error in {name}: {e}")

            logger.info(
                f"Finished {name} in {time.monotonic() - started:.1f}s: {result['status']}"
            )
            return result

        return wrapper

    return decorator
