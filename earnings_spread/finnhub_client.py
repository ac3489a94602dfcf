"""HTTP client for Finnhub earnings data."""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional

import requests

from .api.base_client import BaseAPIClient
from .config import FinnhubConfig
from .exceptions import FinnhubAPIError

logger = logging.getLogger(__name__)


@dataclass
class EarningsEvent:
    """
    Scheduled earnings announcement.

    Attributes:
        symbol: Stock ticker symbol
        date: Announcement date
        hour: When earnings are announced ("bmo", "amc", or "" if unknown)
            bmo = Before Market Open
            amc = After Market Close
    """

    symbol: str
    date: date
    hour: str = ""

    @property
    def is_after_close(self) -> bool:
        return self.hour == "amc"

    @property
    def is_before_open(self) -> bool:
        return self.hour == "bmo"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "symbol": self.symbol,
            "date": self.date.isoformat(),
            "hour": self.hour,
        }


class FinnhubClient(BaseAPIClient):
    """
    Client for the Finnhub earnings endpoints.

    This client handles:
    - Token authentication via query parameter
    - Retry logic inherited from BaseAPIClient
    - Mapping HTTP failures to FinnhubAPIError
    """

    def __init__(self, config: FinnhubConfig):
        """
        Initialize client with configuration.

        Args:
            config: FinnhubConfig instance with API credentials and settings
        """
        super().__init__(
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
            timeout=config.timeout,
        )
        self.config = config

    def _handle_error_response(self, response: requests.Response) -> None:
        if response.status_code == 401:
            raise FinnhubAPIError("Authentication failed. Check your API key.")
        if response.status_code == 429:
            raise FinnhubAPIError(
                "Rate limit exceeded. Finnhub free tier allows 60 calls/minute."
            )
        raise FinnhubAPIError(f"Finnhub API error (HTTP {response.status_code}): {response.text}")

    def _get(self, path: str, params: Dict[str, Any]) -> Any:
        url = f"{self.config.base_url}{path}"
        try:
            response = self.request("GET", url, params={**params, "token": self.config.api_key})
            return response.json()
        except requests.exceptions.Timeout as e:
            raise FinnhubAPIError(f"Request timeout after {self.config.timeout}s for {path}") from e
        except requests.exceptions.ConnectionError as e:
            raise FinnhubAPIError("Connection error. Check your internet connection.") from e
        except requests.exceptions.RequestException as e:
            raise FinnhubAPIError(f"API request failed: {str(e)}") from e
        except ValueError as e:
            raise FinnhubAPIError(f"Invalid JSON response from API: {str(e)}") from e

    def get_earnings_calendar(self, from_date: date, to_date: date) -> List[EarningsEvent]:
        """
        Fetch all earnings announcements in a date range.

        Args:
            from_date: First day (inclusive)
            to_date: Last day (inclusive)

        Returns:
            EarningsEvent list; entries missing a symbol or date are dropped

        Raises:
            FinnhubAPIError: If API request fails
        """
        logger.info(f"Fetching earnings calendar from {from_date} to {to_date}")
        data = self._get(
            "/calendar/earnings",
            {"from": from_date.isoformat(), "to": to_date.isoformat()},
        )

        events = []
        for entry in data.get("earningsCalendar") or []:
            event = _parse_event(entry)
            if event is not None:
                events.append(event)

        logger.info(f"Found {len(events)} earnings events")
        return events

    def get_historical_earnings_dates(self, symbol: str) -> List[date]:
        """
        Past earnings periods for a symbol, newest first.

        Raises:
            FinnhubAPIError: If API request fails
        """
        symbol = symbol.upper().strip()
        data = self._get("/stock/earnings", {"symbol": symbol})

        dates = []
        for entry in data or []:
            period = entry.get("period")
            if not period:
                continue
            try:
                dates.append(date.fromisoformat(period[:10]))
            except ValueError:
                logger.debug(f"Skipping unparseable earnings period {period!r} for {symbol}")

        logger.info(f"Found {len(dates)} historical earnings dates for {symbol}")
        return sorted(dates, reverse=True)


def _parse_event(entry: Dict[str, Any]) -> Optional[EarningsEvent]:
    symbol = entry.get("symbol")
    raw_date = entry.get("date")
    if not symbol or not raw_date:
        return None
    try:
        event_date = date.fromisoformat(raw_date[:10])
    except ValueError:
        logger.warning(f"Skipping earnings entry with bad date {raw_date!r} for {symbol}")
        return None
    return EarningsEvent(
        symbol=symbol.upper(),
        date=event_date,
        hour=(entry.get("hour") or "").lower(),
    )
