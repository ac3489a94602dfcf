"""
Mandatory gatekeeper filters.

Every candidate must pass all four, evaluated in this order:
- liquidity: share volume, price band, ATM option spread/depth/activity
- iv_ratio: short-term IV well above long-term IV
- term_structure: implied volatility in backwardation
- execution_spread: entry debit small relative to the stock price
"""

import logging
from datetime import datetime, time, timedelta
from typing import Any, Dict, Optional

import pytz

from earnings_spread import constants
from earnings_spread.options.models import OptionContract

from .base import FilterResult, GatekeeperFilter, TickerData
from .volatility import average_volume, historical_volatility

logger = logging.getLogger(__name__)

SHORT_LEG_OFFSET_DAYS = 1
SHORT_LEG_FALLBACK_DAYS = 7
SHORT_LEG_WINDOW_DAYS = 2
LONG_LEG_OFFSET_DAYS = 30
LONG_LEG_FALLBACK_DAYS = 60
LONG_LEG_WINDOW_DAYS = 5

HV_SHORT_WINDOW = 20
HV_LONG_WINDOW = 60
HV_TERM_SHORT_WINDOW = 30


class LiquidityFilter(GatekeeperFilter):
    """Underlying and option liquidity."""

    name = "liquidity"

    def check(self, data: TickerData) -> FilterResult:
        avg_volume = average_volume(data.recent_bars(constants.VOLUME_LOOKBACK_DAYS))
        if avg_volume < constants.VOLUME_THRESHOLD:
            return FilterResult.fail(self.name, "low_volume", average_volume=avg_volume)

        price = data.price
        if not constants.MIN_STOCK_PRICE <= price <= constants.MAX_STOCK_PRICE:
            return FilterResult.fail(self.name, "price_out_of_range", price=price)

        earnings = data.earnings_date
        short_leg = data.atm_near(
            earnings + timedelta(days=SHORT_LEG_OFFSET_DAYS), SHORT_LEG_WINDOW_DAYS
        ) or data.atm_near(
            earnings + timedelta(days=SHORT_LEG_FALLBACK_DAYS), SHORT_LEG_WINDOW_DAYS
        )
        long_leg = data.atm_near(
            earnings + timedelta(days=LONG_LEG_OFFSET_DAYS), LONG_LEG_WINDOW_DAYS
        ) or data.atm_near(
            earnings + timedelta(days=LONG_LEG_FALLBACK_DAYS), LONG_LEG_WINDOW_DAYS
        )
        legs = [leg for leg in (short_leg, long_leg) if leg is not None]
        if not legs:
            return FilterResult.fail(self.name, "no_options")

        details: Dict[str, Any] = {"average_volume": avg_volume, "price": price}
        for leg in legs:
            reason = self._check_leg(data, leg, details)
            if reason:
                return FilterResult.fail(self.name, reason, **details)
        return FilterResult.ok(self.name, **details)

    def _check_leg(
        self, data: TickerData, leg: OptionContract, details: Dict[str, Any]
    ) -> Optional[str]:
        spread_ratio = leg.spread_ratio
        details[f"{leg.symbol}.spread_ratio"] = spread_ratio
        if spread_ratio is None or spread_ratio > constants.BID_ASK_THRESHOLD:
            return "wide_spread"

        details[f"{leg.symbol}.depth"] = leg.depth
        if leg.depth < constants.QUOTE_DEPTH_THRESHOLD:
            return "thin_quotes"

        traded = self._contracts_traded(data, leg.symbol)
        details[f"{leg.symbol}.contracts_traded"] = traded
        if traded < constants.MIN_DAILY_OPTION_TRADES:
            return "low_option_activity"
        return None

    @staticmethod
    def _contracts_traded(data: TickerData, symbol: str) -> int:
        """Contracts traded since the start of the previous calendar day."""
        start = pytz.utc.localize(
            datetime.combine(data.scan_date - timedelta(days=1), time.min)
        )
        end = data.now()
        if end <= start:
            end = start + timedelta(days=1)
        trades = data.client.get_option_trades([symbol], start, end)
        return sum(trade.size for trade in trades)


class IVRatioFilter(GatekeeperFilter):
    """Short-term implied volatility relative to long-term."""

    name = "iv_ratio"

    def check(self, data: TickerData) -> FilterResult:
        earnings = data.earnings_date
        short_leg = data.atm_near(
            earnings + timedelta(days=SHORT_LEG_OFFSET_DAYS), SHORT_LEG_WINDOW_DAYS
        )
        long_leg = data.atm_near(
            earnings + timedelta(days=LONG_LEG_OFFSET_DAYS), SHORT_LEG_WINDOW_DAYS
        )
        short_iv = short_leg.implied_volatility if short_leg else None
        long_iv = long_leg.implied_volatility if long_leg else None

        if short_iv and long_iv and short_iv > 0 and long_iv > 0:
            ratio = short_iv / long_iv
            source = "implied"
        else:
            # realized volatility stands in when the chain has no IV
            hv_short = historical_volatility(data.bars, HV_SHORT_WINDOW)
            hv_long = historical_volatility(data.bars, HV_LONG_WINDOW)
            if not hv_short or not hv_long:
                return FilterResult.fail(self.name, "no_volatility_data")
            ratio = hv_short / hv_long
            source = "historical"

        if ratio < constants.IV_RATIO_THRESHOLD:
            return FilterResult.fail(self.name, "low_iv_ratio", ratio=ratio, source=source)
        return FilterResult.ok(self.name, ratio=ratio, source=source)


class TermStructureFilter(GatekeeperFilter):
    """Implied volatility term structure must be in backwardation."""

    name = "term_structure"

    def check(self, data: TickerData) -> FilterResult:
        earnings = data.earnings_date
        event_leg = data.atm_near(
            earnings + timedelta(days=SHORT_LEG_OFFSET_DAYS), SHORT_LEG_WINDOW_DAYS
        )
        back_ivs = []
        for offset in (LONG_LEG_OFFSET_DAYS, LONG_LEG_FALLBACK_DAYS):
            leg = data.atm_near(earnings + timedelta(days=offset), LONG_LEG_WINDOW_DAYS)
            if leg is not None and leg.implied_volatility and leg.implied_volatility > 0:
                back_ivs.append(leg.implied_volatility)

        event_iv = event_leg.implied_volatility if event_leg else None
        if event_iv and event_iv > 0 and back_ivs:
            slope = event_iv - max(back_ivs)
            if slope < constants.SLOPE_THRESHOLD:
                return FilterResult.fail(self.name, "flat_term_structure", slope=slope)
            return FilterResult.ok(self.name, slope=slope, source="implied")

        hv_short = historical_volatility(data.bars, HV_TERM_SHORT_WINDOW)
        hv_long = historical_volatility(data.bars, HV_LONG_WINDOW)
        if len(data.bars) < HV_LONG_WINDOW or hv_short is None or hv_long is None:
            return FilterResult.fail(self.name, "no_volatility_data")
        hv_slope = hv_long - hv_short
        if hv_slope > constants.TERM_STRUCTURE_HV_SLOPE_THRESHOLD:
            return FilterResult.fail(
                self.name, "flat_term_structure", slope=hv_slope, source="historical"
            )
        return FilterResult.ok(self.name, slope=hv_slope, source="historical")


def _valid_leg_quote(leg: OptionContract) -> bool:
    if leg.bid <= 0 or leg.ask < leg.bid:
        return False
    mid = leg.mid
    if mid < constants.MIN_LEG_MID_PRICE:
        return False
    return (leg.ask - leg.bid) / mid * 100 <= constants.MAX_LEG_SPREAD_PCT


class ExecutionSpreadFilter(GatekeeperFilter):
    """Entry debit must be small relative to the stock price."""

    name = "execution_spread"

    def check(self, data: TickerData) -> FilterResult:
        earnings = data.earnings_date
        short_leg = data.atm_between(
            earnings + timedelta(days=1), earnings + timedelta(days=7)
        )
        if short_leg is None:
            return FilterResult.fail(self.name, "no_short_leg")

        long_start = earnings + timedelta(days=26)
        long_end = earnings + timedelta(days=40)
        long_chain = data.chain(long_start, long_end)
        long_leg = None
        for expiration in long_chain.expirations_between(long_start, long_end):
            long_leg = long_chain.get(expiration, short_leg.strike)
            if long_leg is not None:
                break
        long_leg = long_leg or data.atm_between(long_start, long_end)
        if long_leg is None:
            return FilterResult.fail(self.name, "no_long_leg")

        if not (_valid_leg_quote(short_leg) and _valid_leg_quote(long_leg)):
            return FilterResult.fail(
                self.name,
                "bad_leg_quote",
                short_leg=short_leg.symbol,
                long_leg=long_leg.symbol,
            )

        debit = long_leg.ask - short_leg.bid
        ratio = debit / data.price if data.price > 0 else float("inf")
        details = {"debit": debit, "debit_to_price": ratio}
        if debit <= 0:
            return FilterResult.fail(self.name, "no_debit", **details)
        if ratio > constants.MAX_DEBIT_TO_PRICE_RATIO:
            return FilterResult.fail(self.name, "debit_too_wide", **details)

        if short_leg.theta is not None and long_leg.theta is not None:
            net_theta = long_leg.theta - short_leg.theta
            details["net_theta"] = net_theta
            if net_theta <= 0:
                return FilterResult.fail(self.name, "negative_theta", **details)
        return FilterResult.ok(self.name, **details)
