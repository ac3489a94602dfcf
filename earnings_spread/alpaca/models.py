"""
Alpaca account, position, order and market data models.

These models wrap the Alpaca REST response shapes and give the strategy
phases a typed interface.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from earnings_spread.orders.legs import CalendarSpreadLeg, Side


@dataclass
class MarketClock:
    """Brokerage market clock."""

    is_open: bool
    timestamp: Optional[datetime] = None
    next_open: Optional[datetime] = None
    next_close: Optional[datetime] = None


@dataclass
class AccountSnapshot:
    """
    Account balances used for sizing and equity checks.

    Attributes:
        equity: Total account equity
        buying_power: Buying power available for new orders
        cash: Cash balance
    """

    equity: float
    buying_power: float
    cash: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "equity": self.equity,
            "buying_power": self.buying_power,
            "cash": self.cash,
        }


@dataclass
class Position:
    """
    Held position.

    Attributes:
        symbol: Stock or option symbol
        qty: Signed quantity as reported
        side: "long" or "short"
        asset_class: "us_equity" or "us_option"
        market_value: Current market value
        cost_basis: Total cost basis
    """

    symbol: str
    qty: float
    side: str
    asset_class: str
    market_value: Optional[float] = None
    cost_basis: Optional[float] = None

    @property
    def is_option(self) -> bool:
        return self.asset_class.lower() in ("us_option", "option")


@dataclass
class BrokerOrder:
    """
    Order as reported by the brokerage.

    Attributes:
        id: Order id
        status: Order status (new, accepted, partially_filled, canceled, ...)
        order_class: "mleg" for multi-leg orders
        order_type: "limit" or "market"
        qty: Parent quantity
        limit_price: Limit price for limit orders
        submitted_at: Submission timestamp (UTC)
        legs: Order legs
    """

    id: str
    status: str
    order_class: str = ""
    order_type: str = ""
    qty: int = 0
    limit_price: Optional[float] = None
    submitted_at: Optional[datetime] = None
    legs: List[CalendarSpreadLeg] = field(default_factory=list)

    @property
    def is_multi_leg(self) -> bool:
        return self.order_class == "mleg"

    @property
    def far_leg(self) -> Optional[CalendarSpreadLeg]:
        """Leg with the latest expiration."""
        if not self.legs:
            return None
        return max(self.legs, key=lambda leg: leg.expiration)

    @property
    def near_leg(self) -> Optional[CalendarSpreadLeg]:
        """Leg with the earliest expiration."""
        if not self.legs:
            return None
        return min(self.legs, key=lambda leg: leg.expiration)

    @property
    def is_entry(self) -> bool:
        """Entry orders buy the far leg; anything else is an exit."""
        far = self.far_leg
        return far is not None and far.side is Side.BUY


@dataclass
class DailyBar:
    """Daily OHLCV bar."""

    day: date
    open: float
    high: float
    low: float
    close: float
    volume: int


@dataclass
class OptionTrade:
    """Single option print."""

    symbol: str
    timestamp: datetime
    price: float
    size: int
