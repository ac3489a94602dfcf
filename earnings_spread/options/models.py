"""Option contract and quote models."""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class OptionQuote:
    """
    Latest bid/ask quote for one option symbol.

    Attributes:
        symbol: Option symbol
        bid: Bid price
        ask: Ask price
        bid_size: Contracts at the bid
        ask_size: Contracts at the ask
    """

    symbol: str
    bid: float
    ask: float
    bid_size: int = 0
    ask_size: int = 0

    @property
    def mid(self) -> float:
        """Midpoint of bid and ask."""
        return (self.bid + self.ask) / 2


@dataclass(frozen=True)
class OptionContract:
    """
    Snapshot of a single listed option.

    Attributes:
        symbol: OCC-style option symbol
        underlying: Underlying ticker
        expiration: Expiration date
        strike: Strike price
        option_type: "call" or "put"
        bid: Latest bid
        ask: Latest ask
        bid_size: Contracts at the bid
        ask_size: Contracts at the ask
        implied_volatility: Implied volatility as decimal, if reported
        greeks: Greeks by name (delta, gamma, theta, vega, rho), if reported
    """

    symbol: str
    underlying: str
    expiration: date
    strike: float
    option_type: str
    bid: float = 0.0
    ask: float = 0.0
    bid_size: int = 0
    ask_size: int = 0
    implied_volatility: Optional[float] = None
    greeks: Dict[str, float] = field(default_factory=dict, compare=False, hash=False)

    @property
    def mid(self) -> float:
        """Midpoint of bid and ask."""
        return (self.bid + self.ask) / 2

    @property
    def spread_ratio(self) -> Optional[float]:
        """Bid-ask spread as a fraction of mid, or None without a two-sided quote."""
        if self.bid <= 0 or self.ask <= 0:
            return None
        return (self.ask - self.bid) / self.mid

    @property
    def depth(self) -> int:
        """Combined bid and ask size."""
        return self.bid_size + self.ask_size

    @property
    def theta(self) -> Optional[float]:
        """Theta, if greeks were reported."""
        return self.greeks.get("theta")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "symbol": self.symbol,
            "underlying": self.underlying,
            "expiration": self.expiration.isoformat(),
            "strike": self.strike,
            "option_type": self.option_type,
            "bid": self.bid,
            "ask": self.ask,
            "bid_size": self.bid_size,
            "ask_size": self.ask_size,
            "implied_volatility": self.implied_volatility,
            "greeks": dict(self.greeks),
        }
