"""
Calendar spread leg selection and pricing.

Turns a ticker, its current price and a live option chain into a matched
near/far pair at a common at-the-money strike, then prices the pair from
latest quotes:

- entry debit  = max(0, far_ask - near_bid)
- exit credit  = max(0, near_bid - far_ask)

A zero price means there is nothing tradeable and the caller must not build
an order.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List, Mapping, Optional

from earnings_spread import constants
from earnings_spread.exceptions import (
    NoCommonStrike,
    NoExpirationsFound,
    OptionSymbolError,
    QuoteUnavailableError,
    ZeroPriceError,
)

from .chain import OptionChainIndex, closest_strike
from .models import OptionContract, OptionQuote
from .symbols import parse_option_symbol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpreadSelection:
    """Chosen near and far contracts for a calendar spread."""

    ticker: str
    near_symbol: str
    far_symbol: str
    near_expiration: date
    far_expiration: date
    strike: float

    def to_dict(self) -> Dict[str, object]:
        """Convert to dictionary for serialization."""
        return {
            "ticker": self.ticker,
            "near_symbol": self.near_symbol,
            "far_symbol": self.far_symbol,
            "near_expiration": self.near_expiration.isoformat(),
            "far_expiration": self.far_expiration.isoformat(),
            "strike": self.strike,
        }


@dataclass(frozen=True)
class PricedSpread:
    """A selected spread with its entry debit and contract quantity."""

    selection: SpreadSelection
    debit: float
    quantity: int


def _find_symbol(contracts: List[OptionContract], strike: float) -> Optional[str]:
    """Symbol whose parsed strike matches within tolerance."""
    for contract in contracts:
        try:
            parsed = parse_option_symbol(contract.symbol)
        except OptionSymbolError:
            logger.debug(f"Skipping unparseable symbol {contract.symbol}")
            continue
        if abs(parsed.strike - strike) <= constants.STRIKE_MATCH_TOLERANCE:
            return contract.symbol
    return None


def _quote_for(quotes: Mapping[str, OptionQuote], symbol: str) -> OptionQuote:
    quote = quotes.get(symbol)
    if quote is None:
        raise QuoteUnavailableError(f"No quote for {symbol}")
    return quote


class CalendarSpreadSelector:
    """
    Select and price calendar spreads.

    The pure methods (`select_spread`, `price_debit`, `price_credit`,
    `size_order`) take all inputs as arguments. `price_entry` wires them to
    the market data client.
    """

    def __init__(
        self,
        client=None,
        lookahead_days: int = constants.LOOKAHEAD_DAYS,
        far_target_days: int = constants.FAR_TARGET_DAYS,
        option_type: str = "call",
    ):
        """
        Args:
            client: AlpacaClient used by `price_entry` and `fetch_chain`
            lookahead_days: Last day of the expiration window after today
            far_target_days: Target days to expiration for the far leg
            option_type: Contract type used for both legs
        """
        self.client = client
        self.lookahead_days = lookahead_days
        self.far_target_days = far_target_days
        self.option_type = option_type

    def fetch_chain(self, ticker: str, today: date) -> OptionChainIndex:
        """Fetch the chain for the next-day to lookahead window."""
        return OptionChainIndex.fetch(
            self.client,
            ticker,
            today + timedelta(days=1),
            today + timedelta(days=self.lookahead_days),
            self.option_type,
        )

    def select_spread(
        self,
        ticker: str,
        current_price: float,
        chain: OptionChainIndex,
        today: Optional[date] = None,
    ) -> SpreadSelection:
        """
        Choose near/far expirations and the common ATM strike.

        Args:
            ticker: Underlying ticker
            current_price: Current underlying price
            chain: Indexed option chain
            today: Reference date (defaults to date.today())

        Returns:
            SpreadSelection

        Raises:
            NoExpirationsFound: Fewer than two expirations in the window
            NoCommonStrike: No strike (or matching symbol) at both expirations
        """
        today = today or date.today()
        window_end = today + timedelta(days=self.lookahead_days)
        expirations = [
            exp
            for exp in chain.expirations_between(today + timedelta(days=1), window_end)
            if chain.strikes_at(exp, self.option_type)
        ]
        if len(expirations) < 2:
            raise NoExpirationsFound(
                f"{ticker}: need two expirations between {today} and {window_end}, "
                f"found {len(expirations)}"
            )

        near = expirations[0]
        target = today + timedelta(days=self.far_target_days)
        far = min(expirations[1:], key=lambda exp: (abs((exp - target).days), exp.isoformat()))

        strikes = chain.common_strikes(near, far, self.option_type)
        strike = closest_strike(strikes, current_price)
        if strike is None:
            raise NoCommonStrike(f"{ticker}: no common strike for {near} and {far}")

        near_symbol = _find_symbol(chain.contracts_at(near, self.option_type), strike)
        far_symbol = _find_symbol(chain.contracts_at(far, self.option_type), strike)
        if near_symbol is None or far_symbol is None:
            raise NoCommonStrike(f"{ticker}: no symbol matches strike {strike}")

        logger.info(
            f"{ticker}: selected {near_symbol} / {far_symbol} "
            f"(strike {strike}, price {current_price})"
        )
        return SpreadSelection(
            ticker=ticker,
            near_symbol=near_symbol,
            far_symbol=far_symbol,
            near_expiration=near,
            far_expiration=far,
            strike=strike,
        )

    @staticmethod
    def price_debit(
        near_symbol: str, far_symbol: str, quotes: Mapping[str, OptionQuote]
    ) -> float:
        """Entry debit: max(0, far ask - near bid)."""
        near = _quote_for(quotes, near_symbol)
        far = _quote_for(quotes, far_symbol)
        return max(0.0, far.ask - near.bid)

    @staticmethod
    def price_credit(
        near_symbol: str, far_symbol: str, quotes: Mapping[str, OptionQuote]
    ) -> float:
        """Exit credit: max(0, near bid - far ask)."""
        near = _quote_for(quotes, near_symbol)
        far = _quote_for(quotes, far_symbol)
        return max(0.0, near.bid - far.ask)

    @staticmethod
    def size_order(
        debit: float,
        target_dollars: float,
        contract_multiplier: int = constants.CONTRACT_MULTIPLIER,
    ) -> int:
        """
        Contracts affordable within a dollar budget.

        Returns:
            floor(target_dollars / (debit * contract_multiplier)); below 1
            means the budget is too small this cycle

        Raises:
            ZeroPriceError: If debit is not positive
        """
        if debit <= 0:
            raise ZeroPriceError(f"Cannot size an order at debit {debit}")
        return max(0, math.floor(target_dollars / (debit * contract_multiplier)))

    def price_entry(
        self,
        ticker: str,
        current_price: float,
        target_dollars: float,
        today: Optional[date] = None,
    ) -> PricedSpread:
        """
        Select, price and size an entry spread from live data.

        Raises:
            NoExpirationsFound, NoCommonStrike, QuoteUnavailableError:
                data needed for the spread is missing
            ZeroPriceError: The debit is zero
        """
        today = today or date.today()
        chain = self.fetch_chain(ticker, today)
        selection = self.select_spread(ticker, current_price, chain, today)

        quotes = self.client.get_option_quotes([selection.near_symbol, selection.far_symbol])
        debit = self.price_debit(selection.near_symbol, selection.far_symbol, quotes)
        if debit <= 0:
            raise ZeroPriceError(f"{ticker}: no tradeable debit")

        quantity = self.size_order(debit, target_dollars)
        logger.info(
            f"{ticker}: debit {debit:.2f}, target ${target_dollars:,.2f}, quantity {quantity}"
        )
        return PricedSpread(selection=selection, debit=debit, quantity=quantity)
