"""
Alpaca trading and market data client.

One client covers the three Alpaca hosts the strategy uses:
- Trading API (paper or live): clock, account, positions, orders
- Stock data API: daily bars, latest trade/quote
- Options data API: chain snapshots, latest quotes, trades

Error mapping:
- 401/403 -> AlpacaAuthenticationError
- 429 after the rate limit policy is exhausted -> AlpacaRateLimitError
- any rejection mentioning insufficient funds/buying power -> InsufficientFundsError
- other non-2xx -> AlpacaAPIError
"""

import logging
import time
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

import requests

from earnings_spread import constants
from earnings_spread.api.base_client import BaseAPIClient
from earnings_spread.config import AlpacaConfig
from earnings_spread.exceptions import (
    AlpacaAPIError,
    AlpacaAuthenticationError,
    AlpacaRateLimitError,
    InsufficientFundsError,
    QuoteUnavailableError,
)
from earnings_spread.options.models import OptionContract, OptionQuote
from earnings_spread.orders.legs import CalendarSpreadOrder

from . import endpoints
from .models import AccountSnapshot, BrokerOrder, DailyBar, MarketClock, OptionTrade, Position
from .parsers import (
    day_range,
    parse_account,
    parse_bars,
    parse_clock,
    parse_option_quote,
    parse_option_snapshot,
    parse_option_trades,
    parse_order,
    parse_position,
)

logger = logging.getLogger(__name__)

INSUFFICIENT_FUNDS_MARKERS = ("insufficient_funds", "insufficient buying power", "insufficient funds")

TERMINAL_CANCEL_STATUSES = ("canceled", "cancelled", "rejected", "expired")


def _batched(items: List[str], size: int) -> Iterable[List[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class AlpacaClient(BaseAPIClient):
    """
    Authenticated Alpaca REST client.

    Example:
        with AlpacaClient(AlpacaConfig.from_env()) as client:
            if client.is_market_open():
                account = client.get_account()
    """

    def __init__(self, config: AlpacaConfig):
        """
        Initialize client with configuration.

        Args:
            config: AlpacaConfig with credentials and retry settings
        """
        super().__init__(
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
            timeout=config.timeout,
            rate_limit_policy=config.rate_limit_policy,
        )
        self.config = config
        self.trading_url = config.trading_url
        self.session.headers.update({
            "APCA-API-KEY-ID": config.api_key,
            "APCA-API-SECRET-KEY": config.secret_key,
        })
        logger.info(f"Alpaca client configured for {'paper' if config.paper else 'live'} trading")

    # Transport

    def _handle_error_response(self, response: requests.Response) -> None:
        """Map Alpaca error responses to exceptions."""
        body = response.text or ""
        status = response.status_code
        lowered = body.lower()

        if any(marker in lowered for marker in INSUFFICIENT_FUNDS_MARKERS):
            logger.error(f"Order rejected for insufficient funds ({status}): {body}")
            raise InsufficientFundsError(
                f"INSUFFICIENT_FUNDS: {body}", status_code=status, body=body
            )
        if status in (401, 403):
            logger.error(f"Authentication failed ({status})")
            raise AlpacaAuthenticationError(
                "Alpaca rejected the API credentials", status_code=status, body=body
            )
        if status == 429:
            raise AlpacaRateLimitError(
                "Alpaca rate limit exceeded after retries", status_code=status, body=body
            )
        logger.error(f"API error ({status}): {body}")
        raise AlpacaAPIError(f"Alpaca API error ({status}): {body}", status_code=status, body=body)

    def _call(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        try:
            response = self.request(method, url, params=params, json_data=json_data)
        except requests.exceptions.RequestException as e:
            raise AlpacaAPIError(f"Network error calling {url}: {e}") from e
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise AlpacaAPIError(f"Invalid JSON response from {url}: {e}") from e

    def _trading(self, method: str, path: str, **kwargs) -> Any:
        return self._call(method, f"{self.trading_url}{path}", **kwargs)

    def _stock_data(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._call("GET", f"{endpoints.STOCK_DATA_URL}{path}", params=params)

    def _options_data(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._call("GET", f"{endpoints.OPTIONS_DATA_URL}{path}", params=params)

    # Trading API

    def get_clock(self) -> MarketClock:
        return parse_clock(self._trading("GET", endpoints.CLOCK))

    def is_market_open(self) -> bool:
        """Market open flag from the brokerage clock."""
        clock = self.get_clock()
        logger.info(f"Market is {'open' if clock.is_open else 'closed'}")
        return clock.is_open

    def get_account(self) -> AccountSnapshot:
        return parse_account(self._trading("GET", endpoints.ACCOUNT))

    def get_positions(self) -> List[Position]:
        data = self._trading("GET", endpoints.POSITIONS) or []
        positions = [parse_position(item) for item in data]
        logger.info(f"Fetched {len(positions)} positions")
        return positions

    def list_open_orders(self, limit: int = 100) -> List[BrokerOrder]:
        data = self._trading(
            "GET",
            endpoints.ORDERS,
            params={"status": "open", "limit": limit, "nested": "true"},
        ) or []
        return [parse_order(item) for item in data]

    def get_order(self, order_id: str) -> BrokerOrder:
        return parse_order(self._trading("GET", endpoints.ORDER_DETAILS.format(order_id=order_id)))

    def submit_order(self, order: CalendarSpreadOrder) -> BrokerOrder:
        """
        Submit a multi-leg order.

        Raises:
            InsufficientFundsError: If the brokerage rejects for funds
            AlpacaAPIError: For other rejections
        """
        payload = order.to_payload()
        logger.info(f"Submitting {payload['type']} mleg order: {payload}")
        submitted = parse_order(self._trading("POST", endpoints.ORDERS, json_data=payload))
        logger.info(f"Order {submitted.id} submitted (status: {submitted.status})")
        return submitted

    def cancel_order(self, order_id: str) -> None:
        self._trading("DELETE", endpoints.ORDER_DETAILS.format(order_id=order_id))
        logger.info(f"Cancel requested for order {order_id}")

    def wait_for_cancellation(
        self,
        order_id: str,
        attempts: int = constants.CANCEL_POLL_ATTEMPTS,
        interval: float = constants.CANCEL_POLL_INTERVAL,
    ) -> bool:
        """
        Poll an order until the cancel settles.

        Returns:
            True once the order reports canceled/rejected/expired, False if
            it has not settled after all attempts
        """
        for attempt in range(attempts):
            order = self.get_order(order_id)
            if order.status.lower() in TERMINAL_CANCEL_STATUSES:
                return True
            logger.debug(
                f"Order {order_id} status {order.status} "
                f"(attempt {attempt + 1}/{attempts})"
            )
            time.sleep(interval)
        logger.warning(f"Order {order_id} did not settle after {attempts} polls")
        return False

    # Stock data API

    def get_daily_bars(self, symbol: str, start: date, end: date) -> List[DailyBar]:
        """Split-adjusted daily bars for [start, end], following pagination."""
        params: Dict[str, Any] = {
            "symbols": symbol,
            "timeframe": "1Day",
            "limit": 1000,
            "adjustment": "all",
            **day_range(start, end),
        }
        bars: List[DailyBar] = []
        while True:
            data = self._stock_data(endpoints.STOCK_BARS, params=params)
            bars.extend(parse_bars((data.get("bars") or {}).get(symbol, [])))
            token = data.get("next_page_token")
            if not token:
                break
            params["page_token"] = token
        return bars

    def get_latest_price(self, symbol: str) -> float:
        """
        Latest trade price, falling back to the quote midpoint.

        Raises:
            QuoteUnavailableError: If neither trade nor quote has a price
        """
        trade = self._stock_data(endpoints.STOCK_LATEST_TRADE.format(symbol=symbol))
        price = float((trade.get("trade") or {}).get("p") or 0)
        if price > 0:
            return price

        quote = self._stock_data(endpoints.STOCK_LATEST_QUOTE.format(symbol=symbol))
        bid = float((quote.get("quote") or {}).get("bp") or 0)
        ask = float((quote.get("quote") or {}).get("ap") or 0)
        if bid > 0 and ask > 0:
            return (bid + ask) / 2
        raise QuoteUnavailableError(f"No price available for {symbol}")

    # Options data API

    def get_option_chain(
        self,
        symbol: str,
        expiration_gte: date,
        expiration_lte: date,
        option_type: Optional[str] = "call",
    ) -> List[OptionContract]:
        """Option contracts expiring within [expiration_gte, expiration_lte]."""
        params: Dict[str, Any] = {
            "expiration_date_gte": expiration_gte.isoformat(),
            "expiration_date_lte": expiration_lte.isoformat(),
            "feed": endpoints.OPTIONS_FEED,
            "limit": 1000,
        }
        if option_type:
            params["type"] = option_type

        contracts: List[OptionContract] = []
        while True:
            data = self._options_data(
                endpoints.OPTION_SNAPSHOTS.format(symbol=symbol), params=params
            )
            for option_symbol, snapshot in (data.get("snapshots") or {}).items():
                contract = parse_option_snapshot(option_symbol, snapshot)
                if contract is not None:
                    contracts.append(contract)
            token = data.get("next_page_token")
            if not token:
                break
            params["page_token"] = token

        logger.info(
            f"Fetched {len(contracts)} {option_type or 'all'} contracts for {symbol} "
            f"({expiration_gte} to {expiration_lte})"
        )
        return contracts

    def get_option_quotes(self, symbols: List[str]) -> Dict[str, OptionQuote]:
        """Latest quotes keyed by symbol, requested in batches."""
        quotes: Dict[str, OptionQuote] = {}
        for batch in _batched(list(symbols), constants.SYMBOL_BATCH_SIZE):
            data = self._options_data(
                endpoints.OPTION_LATEST_QUOTES,
                params={"symbols": ",".join(batch), "feed": endpoints.OPTIONS_FEED},
            )
            for symbol, raw in (data.get("quotes") or {}).items():
                quotes[symbol] = parse_option_quote(symbol, raw)
        return quotes

    def get_option_trades(
        self, symbols: List[str], start: datetime, end: datetime
    ) -> List[OptionTrade]:
        """Option prints for symbols between start and end."""
        trades: List[OptionTrade] = []
        for batch in _batched(list(symbols), constants.SYMBOL_BATCH_SIZE):
            params: Dict[str, Any] = {
                "symbols": ",".join(batch),
                "start": start.isoformat(),
                "end": end.isoformat(),
                "limit": 1000,
            }
            while True:
                data = self._options_data(endpoints.OPTION_TRADES, params=params)
                trades.extend(parse_option_trades(data.get("trades") or {}))
                token = data.get("next_page_token")
                if not token:
                    break
                params["page_token"] = token
        return trades

