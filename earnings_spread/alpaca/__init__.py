"""
Alpaca API client module.

This module provides integration with Alpaca's Trading, Stock Data and
Options Data APIs. It includes:

- AlpacaClient: Authenticated HTTP client for API calls
- Trading endpoints: clock, account, positions, multi-leg orders
- Market data endpoints: daily bars, option chain snapshots, quotes, trades
- Data models: AccountSnapshot, Position, BrokerOrder
"""

from .client import AlpacaClient
from .models import AccountSnapshot, BrokerOrder, DailyBar, MarketClock, OptionTrade, Position

__all__ = [
    "AlpacaClient",
    "AccountSnapshot",
    "BrokerOrder",
    "DailyBar",
    "MarketClock",
    "OptionTrade",
    "Position",
]
