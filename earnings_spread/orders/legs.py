"""
Calendar spread legs and multi-leg order construction.

A calendar spread order always has exactly two legs with different
expirations, opposite sides and equal quantity. Leg ratios are reduced by
their GCD, with the common factor moved to the parent order quantity, so the
brokerage receives the minimal representation.

Entry:  buy_to_open far leg, sell_to_open near leg
Exit:   close each held leg (long -> sell_to_close, short -> buy_to_close)
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from enum import Enum
from functools import reduce
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from earnings_spread.exceptions import (
    InvalidSpreadError,
    OptionSymbolError,
    UncoveredShortError,
    ZeroPriceError,
)
from earnings_spread.options.symbols import parse_option_symbol

logger = logging.getLogger(__name__)


class Side(Enum):
    """Order side of a leg."""

    BUY = "buy"
    SELL = "sell"

    @property
    def opposite(self) -> "Side":
        return Side.SELL if self is Side.BUY else Side.BUY


class PositionIntent(Enum):
    """Whether a leg opens or closes, and in which direction."""

    BUY_TO_OPEN = "buy_to_open"
    SELL_TO_OPEN = "sell_to_open"
    BUY_TO_CLOSE = "buy_to_close"
    SELL_TO_CLOSE = "sell_to_close"


class OrderType(Enum):
    """Parent order type."""

    LIMIT = "limit"
    MARKET = "market"


@dataclass(frozen=True)
class CalendarSpreadLeg:
    """
    One leg of a multi-leg option order.

    Attributes:
        symbol: Option symbol
        side: Buy or sell
        ratio_qty: Leg quantity ratio (>= 1)
        position_intent: Open/close intent
    """

    symbol: str
    side: Side
    ratio_qty: int
    position_intent: PositionIntent

    def __post_init__(self) -> None:
        if self.ratio_qty < 1:
            raise ValueError(f"ratio_qty must be >= 1, got {self.ratio_qty}")

    @property
    def expiration(self) -> date:
        return parse_option_symbol(self.symbol).expiration

    @property
    def underlying(self) -> str:
        return parse_option_symbol(self.symbol).underlying

    def with_ratio(self, ratio_qty: int) -> "CalendarSpreadLeg":
        """Copy of this leg with a different ratio."""
        return CalendarSpreadLeg(self.symbol, self.side, ratio_qty, self.position_intent)

    def to_dict(self) -> Dict[str, str]:
        """Brokerage wire representation (ratio_qty as a string)."""
        return {
            "symbol": self.symbol,
            "side": self.side.value,
            "ratio_qty": str(self.ratio_qty),
            "position_intent": self.position_intent.value,
        }


def gcd(a: int, b: int) -> int:
    """Greatest common divisor: gcd(a, 0) == |a| and gcd(a, b) == gcd(b, a mod b)."""
    while b != 0:
        a, b = b, a % b
    return abs(a)


def reduce_ratios(quantities: Sequence[int]) -> Tuple[int, List[int]]:
    """
    Reduce leg quantities to lowest terms.

    Args:
        quantities: Positive leg quantities

    Returns:
        (common_factor, reduced_ratios), e.g. [4, 4] -> (4, [1, 1])
    """
    if not quantities:
        return 1, []
    common = reduce(gcd, (abs(q) for q in quantities))
    if common == 0:
        raise ValueError("Leg quantities cannot all be zero")
    return common, [abs(q) // common for q in quantities]


def _expiration_or_none(symbol: str) -> Optional[date]:
    try:
        return parse_option_symbol(symbol).expiration
    except OptionSymbolError:
        logger.warning(f"Failed to parse option symbol: {symbol}")
        return None


def is_calendar_spread(legs: Sequence[CalendarSpreadLeg]) -> bool:
    """
    True iff exactly two legs with distinct expirations, opposite sides and
    equal absolute quantities.
    """
    if len(legs) != 2:
        return False

    first, second = legs
    exp1 = _expiration_or_none(first.symbol)
    exp2 = _expiration_or_none(second.symbol)
    if exp1 is None or exp2 is None:
        return False
    if exp1 == exp2:
        # same expiration is a vertical spread
        return False
    if first.side == second.side:
        return False
    return abs(first.ratio_qty) == abs(second.ratio_qty)


def check_covered_shorts(
    legs: Sequence[CalendarSpreadLeg],
    held_longs: Optional[Mapping[Tuple[str, date], int]] = None,
) -> None:
    """
    Enforce that sold contracts never exceed long contracts per
    (underlying, expiration) group.

    Args:
        legs: Order legs (quantities before ratio reduction)
        held_longs: Long contracts already held per (underlying, expiration),
            which cover sell_to_close legs

    Raises:
        UncoveredShortError: If any group sells more than it holds or buys
    """
    shorts: Dict[Tuple[str, date], int] = defaultdict(int)
    longs: Dict[Tuple[str, date], int] = defaultdict(int)
    for key, quantity in (held_longs or {}).items():
        longs[key] += quantity

    for leg in legs:
        parsed = parse_option_symbol(leg.symbol)
        key = (parsed.underlying, parsed.expiration)
        if leg.side is Side.BUY:
            longs[key] += leg.ratio_qty
        else:
            shorts[key] += leg.ratio_qty

    for key, short_count in shorts.items():
        if short_count > longs[key]:
            underlying, expiration = key
            raise UncoveredShortError(
                f"Uncovered shorts in {underlying} {expiration.isoformat()}: "
                f"{short_count} short vs {longs[key]} long"
            )


@dataclass
class CalendarSpreadOrder:
    """
    Two-leg multi-leg (mleg) order.

    Attributes:
        legs: The two legs, ratios reduced to lowest terms
        qty: Parent order quantity
        order_type: Limit or market
        limit_price: Limit price (required for limit orders)
        time_in_force: Always "day"
    """

    legs: Tuple[CalendarSpreadLeg, CalendarSpreadLeg]
    qty: int
    order_type: OrderType = OrderType.LIMIT
    limit_price: Optional[float] = None
    time_in_force: str = "day"

    def __post_init__(self) -> None:
        if self.qty < 1:
            raise InvalidSpreadError(f"Order quantity must be >= 1, got {self.qty}")
        if self.order_type is OrderType.LIMIT:
            if self.limit_price is None or self.limit_price <= 0:
                raise ZeroPriceError(f"Limit order needs a positive price, got {self.limit_price}")
            self.limit_price = round(self.limit_price, 2)
            if self.limit_price <= 0:
                raise ZeroPriceError("Limit price rounds to zero")

    @property
    def symbols(self) -> List[str]:
        return [leg.symbol for leg in self.legs]

    def to_payload(self) -> Dict[str, Any]:
        """Brokerage request body for POST /orders."""
        payload: Dict[str, Any] = {
            "order_class": "mleg",
            "type": self.order_type.value,
            "time_in_force": self.time_in_force,
            "qty": str(self.qty),
            "legs": [leg.to_dict() for leg in self.legs],
        }
        if self.order_type is OrderType.LIMIT:
            payload["limit_price"] = self.limit_price
        return payload


def _assemble(
    legs: List[CalendarSpreadLeg],
    order_type: OrderType,
    limit_price: Optional[float],
) -> CalendarSpreadOrder:
    if not is_calendar_spread(legs):
        raise InvalidSpreadError(
            f"Legs do not form a calendar spread: {[leg.symbol for leg in legs]}"
        )
    common, ratios = reduce_ratios([leg.ratio_qty for leg in legs])
    reduced = tuple(leg.with_ratio(ratio) for leg, ratio in zip(legs, ratios))
    return CalendarSpreadOrder(
        legs=reduced,
        qty=common,
        order_type=order_type,
        limit_price=limit_price,
    )


def build_entry_order(
    near_symbol: str,
    far_symbol: str,
    quantity: int,
    limit_price: float,
) -> CalendarSpreadOrder:
    """
    Build an opening calendar spread: buy the far leg, sell the near leg.

    Raises:
        InvalidSpreadError: If the symbols do not form a calendar spread
        ZeroPriceError: If the limit price is not positive
    """
    if quantity < 1:
        raise InvalidSpreadError(f"Entry quantity must be >= 1, got {quantity}")
    legs = [
        CalendarSpreadLeg(far_symbol, Side.BUY, quantity, PositionIntent.BUY_TO_OPEN),
        CalendarSpreadLeg(near_symbol, Side.SELL, quantity, PositionIntent.SELL_TO_OPEN),
    ]
    return _assemble(legs, OrderType.LIMIT, limit_price)


def build_exit_order(
    positions: Sequence[Any],
    order_type: OrderType = OrderType.MARKET,
    limit_price: Optional[float] = None,
) -> CalendarSpreadOrder:
    """
    Build a closing order for two held option positions.

    Args:
        positions: Held positions with `symbol`, `qty` and `side` ("long"/"short")
        order_type: Market or limit
        limit_price: Limit price for limit orders

    Raises:
        UncoveredShortError: If closing would leave sold contracts uncovered
        InvalidSpreadError: If the positions are not a calendar spread
    """
    legs: List[CalendarSpreadLeg] = []
    held_longs: Dict[Tuple[str, date], int] = defaultdict(int)
    for position in positions:
        quantity = abs(int(float(position.qty)))
        if quantity < 1:
            raise InvalidSpreadError(f"Position {position.symbol} has no quantity to close")
        if position.side == "long":
            parsed = parse_option_symbol(position.symbol)
            held_longs[(parsed.underlying, parsed.expiration)] += quantity
            legs.append(
                CalendarSpreadLeg(position.symbol, Side.SELL, quantity, PositionIntent.SELL_TO_CLOSE)
            )
        else:
            legs.append(
                CalendarSpreadLeg(position.symbol, Side.BUY, quantity, PositionIntent.BUY_TO_CLOSE)
            )

    check_covered_shorts(legs, held_longs)
    return _assemble(legs, order_type, limit_price)


def rebuild_order(
    legs: Sequence[CalendarSpreadLeg],
    qty: int,
    order_type: OrderType,
    limit_price: Optional[float] = None,
) -> CalendarSpreadOrder:
    """
    Rebuild an existing order's legs at a new price or type.

    Used when the lifecycle monitor cancels and resubmits. Exit legs
    (closing intents) are re-checked for covered shorts, treating each
    sell_to_close leg as covered by the long it closes.
    """
    if any(
        leg.position_intent in (PositionIntent.SELL_TO_CLOSE, PositionIntent.BUY_TO_CLOSE)
        for leg in legs
    ):
        held_longs: Dict[Tuple[str, date], int] = defaultdict(int)
        for leg in legs:
            if leg.position_intent is PositionIntent.SELL_TO_CLOSE:
                parsed = parse_option_symbol(leg.symbol)
                held_longs[(parsed.underlying, parsed.expiration)] += leg.ratio_qty
        check_covered_shorts(legs, held_longs)
    return CalendarSpreadOrder(
        legs=tuple(legs),
        qty=qty,
        order_type=order_type,
        limit_price=limit_price,
    )
