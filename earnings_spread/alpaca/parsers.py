"""
Alpaca API response parsers.

Convert raw Alpaca JSON into the internal models used by the strategy.
Numeric fields arrive as strings on the trading API and as numbers on the
data API; both are accepted.
"""

import logging
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from earnings_spread.exceptions import OptionSymbolError
from earnings_spread.options.models import OptionContract, OptionQuote
from earnings_spread.options.symbols import parse_option_symbol
from earnings_spread.orders.legs import CalendarSpreadLeg, PositionIntent, Side

from .models import (
    AccountSnapshot,
    BrokerOrder,
    DailyBar,
    MarketClock,
    OptionTrade,
    Position,
)

logger = logging.getLogger(__name__)

# datetime.fromisoformat before 3.11 needs exactly 3 or 6 fraction digits
_FRACTION = re.compile(r"\.(\d+)")


def _six_digit_fraction(match: "re.Match") -> str:
    return "." + match.group(1)[:6].ljust(6, "0")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp ("...Z" or with offset, any fraction length)."""
    if not value:
        return None
    text = _FRACTION.sub(_six_digit_fraction, value.strip(), count=1)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    return float(value)


def _int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    return int(float(value))


def parse_clock(data: Dict[str, Any]) -> MarketClock:
    return MarketClock(
        is_open=bool(data.get("is_open", False)),
        timestamp=parse_timestamp(data.get("timestamp")),
        next_open=parse_timestamp(data.get("next_open")),
        next_close=parse_timestamp(data.get("next_close")),
    )


def parse_account(data: Dict[str, Any]) -> AccountSnapshot:
    return AccountSnapshot(
        equity=_float(data.get("equity")),
        buying_power=_float(data.get("buying_power")),
        cash=_float(data.get("cash")),
    )


def parse_position(data: Dict[str, Any]) -> Position:
    return Position(
        symbol=data["symbol"],
        qty=_float(data.get("qty")),
        side=str(data.get("side", "long")).lower(),
        asset_class=str(data.get("asset_class", "")),
        market_value=_float(data.get("market_value"), default=None),
        cost_basis=_float(data.get("cost_basis"), default=None),
    )


def parse_leg(data: Dict[str, Any]) -> CalendarSpreadLeg:
    side = Side(str(data.get("side", "buy")).lower())
    intent_value = data.get("position_intent")
    if intent_value:
        intent = PositionIntent(intent_value)
    else:
        intent = PositionIntent.BUY_TO_OPEN if side is Side.BUY else PositionIntent.SELL_TO_OPEN
    return CalendarSpreadLeg(
        symbol=data["symbol"],
        side=side,
        ratio_qty=max(1, _int(data.get("ratio_qty"), default=1)),
        position_intent=intent,
    )


def parse_order(data: Dict[str, Any]) -> BrokerOrder:
    limit_price = data.get("limit_price")
    return BrokerOrder(
        id=data["id"],
        status=data.get("status", ""),
        order_class=data.get("order_class", "") or "",
        order_type=data.get("type", data.get("order_type", "")) or "",
        qty=_int(data.get("qty")),
        limit_price=_float(limit_price) if limit_price not in (None, "") else None,
        submitted_at=parse_timestamp(data.get("submitted_at") or data.get("created_at")),
        legs=[parse_leg(leg) for leg in data.get("legs") or []],
    )


def parse_bars(raw_bars: List[Dict[str, Any]]) -> List[DailyBar]:
    bars = []
    for bar in raw_bars:
        timestamp = parse_timestamp(bar["t"])
        bars.append(
            DailyBar(
                day=timestamp.date(),
                open=_float(bar.get("o")),
                high=_float(bar.get("h")),
                low=_float(bar.get("l")),
                close=_float(bar.get("c")),
                volume=_int(bar.get("v")),
            )
        )
    return bars


def parse_option_quote(symbol: str, data: Dict[str, Any]) -> OptionQuote:
    return OptionQuote(
        symbol=symbol,
        bid=_float(data.get("bp")),
        ask=_float(data.get("ap")),
        bid_size=_int(data.get("bs")),
        ask_size=_int(data.get("as")),
    )


def parse_option_snapshot(symbol: str, data: Dict[str, Any]) -> Optional[OptionContract]:
    """
    Parse one entry of an option chain snapshot.

    Returns:
        OptionContract, or None if the symbol does not parse
    """
    try:
        parsed = parse_option_symbol(symbol)
    except OptionSymbolError:
        logger.debug(f"Skipping snapshot with unparseable symbol {symbol}")
        return None

    quote = data.get("latestQuote") or {}
    greeks = {
        name: float(value)
        for name, value in (data.get("greeks") or {}).items()
        if value is not None
    }
    iv = data.get("impliedVolatility")
    return OptionContract(
        symbol=symbol,
        underlying=parsed.underlying,
        expiration=parsed.expiration,
        strike=parsed.strike,
        option_type=parsed.option_type,
        bid=_float(quote.get("bp")),
        ask=_float(quote.get("ap")),
        bid_size=_int(quote.get("bs")),
        ask_size=_int(quote.get("as")),
        implied_volatility=float(iv) if iv is not None else None,
        greeks=greeks,
    )


def parse_option_trades(raw: Dict[str, List[Dict[str, Any]]]) -> List[OptionTrade]:
    trades = []
    for symbol, prints in raw.items():
        for trade in prints:
            trades.append(
                OptionTrade(
                    symbol=symbol,
                    timestamp=parse_timestamp(trade["t"]),
                    price=_float(trade.get("p")),
                    size=_int(trade.get("s")),
                )
            )
    return trades


def day_range(start: date, end: date) -> Dict[str, str]:
    """Query parameters for an inclusive date range."""
    return {"start": start.isoformat(), "end": end.isoformat()}
