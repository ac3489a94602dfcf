"""
Gatekeeper filter building blocks.

Each filter inspects one ticker through a shared `TickerData`, which fetches
market data lazily and caches it for the ticker's evaluation. A filter that
never runs (because an earlier mandatory filter failed) therefore costs no
API calls.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytz

from earnings_spread import constants
from earnings_spread.alpaca.models import DailyBar
from earnings_spread.options.chain import OptionChainIndex
from earnings_spread.options.models import OptionContract

logger = logging.getLogger(__name__)


@dataclass
class FilterResult:
    """
    Outcome of one filter for one ticker.

    Attributes:
        name: Filter name (e.g. "liquidity")
        passed: Whether the ticker passed
        reason: Short reason code when the filter failed
        details: Values the decision was based on
    """

    name: str
    passed: bool
    reason: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, name: str, **details: Any) -> "FilterResult":
        return cls(name=name, passed=True, details=details)

    @classmethod
    def fail(cls, name: str, reason: str, **details: Any) -> "FilterResult":
        return cls(name=name, passed=False, reason=reason, details=details)


def _utc_now() -> datetime:
    return datetime.now(pytz.utc)


class TickerData:
    """
    Lazily loaded market data for one ticker on one scan date.

    Attributes:
        ticker: Underlying symbol
        scan_date: Date of the scan
        earnings_date: Announcement date the spread is built around
    """

    def __init__(
        self,
        ticker: str,
        scan_date: date,
        client,
        earnings_client=None,
        earnings_date: Optional[date] = None,
        now: Callable[[], datetime] = _utc_now,
    ):
        self.ticker = ticker
        self.scan_date = scan_date
        self.earnings_date = earnings_date or scan_date
        self.client = client
        self.earnings_client = earnings_client
        self.now = now

        self._price: Optional[float] = None
        self._bars: Optional[List[DailyBar]] = None
        self._earnings_history: Optional[List[date]] = None
        self._chains: Dict[Tuple[date, date, str], OptionChainIndex] = {}

    @property
    def price(self) -> float:
        if self._price is None:
            self._price = self.client.get_latest_price(self.ticker)
        return self._price

    @property
    def bars(self) -> List[DailyBar]:
        """Daily bars covering the volatility lookback, oldest first."""
        if self._bars is None:
            start = self.scan_date - timedelta(days=constants.VOLATILITY_LOOKBACK_DAYS)
            bars = self.client.get_daily_bars(self.ticker, start, self.scan_date)
            self._bars = sorted(bars, key=lambda bar: bar.day)
        return self._bars

    def recent_bars(self, days: int) -> List[DailyBar]:
        """Bars within the last `days` calendar days of the scan date."""
        cutoff = self.scan_date - timedelta(days=days)
        return [bar for bar in self.bars if bar.day >= cutoff]

    @property
    def earnings_history(self) -> List[date]:
        """Past earnings dates before the scan date, newest first."""
        if self._earnings_history is None:
            if self.earnings_client is None:
                self._earnings_history = []
            else:
                dates = self.earnings_client.get_historical_earnings_dates(self.ticker)
                self._earnings_history = [d for d in dates if d < self.scan_date]
        return self._earnings_history

    def chain(self, start: date, end: date, option_type: str = "call") -> OptionChainIndex:
        key = (start, end, option_type)
        if key not in self._chains:
            self._chains[key] = OptionChainIndex.fetch(
                self.client, self.ticker, start, end, option_type
            )
        return self._chains[key]

    def atm_near(
        self, target: date, window_days: int, option_type: str = "call"
    ) -> Optional[OptionContract]:
        """ATM contract at the expiration nearest `target` within +/- window_days."""
        chain = self.chain(
            target - timedelta(days=window_days),
            target + timedelta(days=window_days),
            option_type,
        )
        expiration = chain.nearest_expiration(target, window_days)
        if expiration is None:
            return None
        return chain.atm_contract(expiration, self.price, option_type)

    def atm_between(
        self, start: date, end: date, option_type: str = "call"
    ) -> Optional[OptionContract]:
        """ATM contract at the earliest expiration in [start, end]."""
        chain = self.chain(start, end, option_type)
        expirations = chain.expirations_between(start, end)
        for expiration in expirations:
            contract = chain.atm_contract(expiration, self.price, option_type)
            if contract is not None:
                return contract
        return None


class GatekeeperFilter:
    """
    Base class for gatekeeper filters.

    Subclasses set `name` and implement `check()`.
    """

    name = ""

    def check(self, data: TickerData) -> FilterResult:
        raise NotImplementedError

    def __call__(self, data: TickerData) -> FilterResult:
        result = self.check(data)
        logger.info(
            f"{data.ticker} {self.name}: {'PASS' if result.passed else 'FAIL'}"
            f"{'' if result.passed else f' ({result.reason})'} {result.details}"
        )
        return result
