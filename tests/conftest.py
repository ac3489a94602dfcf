"""Pytest fixtures shared by the filter, pipeline and phase tests.

`market_client` is a Mock brokerage client backed by a small, internally
consistent market for ticker XYZ around an earnings date of 2025-01-15:

- price 100, two million shares a day for the past year
- near call expiring 2025-01-17, far call expiring 2025-02-14, both at 100
- a matching near put for the straddle
- two past earnings events, each followed by a quiet week
"""

from datetime import date, datetime, timedelta
from unittest.mock import Mock

import pytest

from earnings_spread.alpaca.models import AccountSnapshot, DailyBar, MarketClock, OptionTrade
from earnings_spread.options.models import OptionContract, OptionQuote
from earnings_spread.options.symbols import format_option_symbol

SCAN_DATE = date(2025, 1, 15)
NEAR_EXPIRATION = date(2025, 1, 17)
FAR_EXPIRATION = date(2025, 2, 14)
PAST_EARNINGS = [date(2024, 10, 20), date(2024, 7, 20)]


def option(expiration, strike=100.0, option_type="call", bid=2.00, ask=2.04, iv=None, theta=None):
    return OptionContract(
        symbol=format_option_symbol("XYZ", expiration, option_type, strike),
        underlying="XYZ",
        expiration=expiration,
        strike=strike,
        option_type=option_type,
        bid=bid,
        ask=ask,
        bid_size=150,
        ask_size=150,
        implied_volatility=iv,
        greeks={"theta": theta} if theta is not None else {},
    )


def default_contracts():
    return [
        option(NEAR_EXPIRATION, bid=2.00, ask=2.04, iv=0.90, theta=-0.10),
        option(FAR_EXPIRATION, bid=3.00, ask=3.06, iv=0.50, theta=-0.03),
        option(NEAR_EXPIRATION, option_type="put", bid=1.90, ask=1.94, iv=0.88),
    ]


def daily_bars(scan_date=SCAN_DATE, volume=2_000_000, events=PAST_EARNINGS):
    """A year of flat bars with a choppy week before each event and a quiet week after."""
    closes = {}
    for event in events:
        for offset in range(1, 8):
            closes[event - timedelta(days=offset)] = 100.0 if offset % 2 else 105.0
            closes[event + timedelta(days=offset)] = 100.0 if offset % 2 == 0 else 100.5
    start = scan_date - timedelta(days=365)
    bars = []
    for i in range((scan_date - start).days):
        day = start + timedelta(days=i)
        close = closes.get(day, 100.0)
        bars.append(DailyBar(day=day, open=close, high=close, low=close, close=close, volume=volume))
    return bars


def chain_lookup(contracts):
    def get_option_chain(ticker, start, end, option_type="call"):
        return [
            c
            for c in contracts
            if start <= c.expiration <= end and (option_type is None or c.option_type == option_type)
        ]

    return get_option_chain


def quote_lookup(contracts):
    def get_option_quotes(symbols):
        by_symbol = {c.symbol: c for c in contracts}
        return {
            s: OptionQuote(s, by_symbol[s].bid, by_symbol[s].ask) for s in symbols if s in by_symbol
        }

    return get_option_quotes


def build_market_client(contracts=None, bars=None, price=100.0, contracts_traded=500):
    contracts = default_contracts() if contracts is None else contracts
    client = Mock()
    client.get_latest_price.return_value = price
    client.get_daily_bars.return_value = daily_bars() if bars is None else bars
    client.get_option_chain.side_effect = chain_lookup(contracts)
    client.get_option_quotes.side_effect = quote_lookup(contracts)
    client.get_option_trades.side_effect = lambda symbols, start, end: [
        OptionTrade(symbols[0], datetime(2025, 1, 14, 15, 0), 2.0, contracts_traded)
    ]
    client.get_account.return_value = AccountSnapshot(equity=100_000.0, buying_power=50_000.0)
    client.get_clock.return_value = MarketClock(is_open=True)
    return client


@pytest.fixture
def market_client():
    return build_market_client()


@pytest.fixture
def earnings_client():
    client = Mock()
    client.get_historical_earnings_dates.return_value = list(PAST_EARNINGS)
    return client
