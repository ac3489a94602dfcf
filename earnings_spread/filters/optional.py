"""
Optional gatekeeper filters.

Evaluated only after every mandatory filter passes. Each one passed adds
OPTIONAL_FILTER_BONUS to the candidate's position size.
"""

import logging
from datetime import timedelta
from typing import List, Tuple

from earnings_spread import constants

from .base import FilterResult, GatekeeperFilter, TickerData
from .volatility import earnings_move, earnings_window_volatility

logger = logging.getLogger(__name__)

MIN_EARNINGS_EVENTS = 2
STRADDLE_WINDOW_DAYS = 2


class EarningsStabilityFilter(GatekeeperFilter):
    """
    Past earnings moves were mostly small, and the options market prices
    in a larger move than history shows.
    """

    name = "earnings_stability"

    def check(self, data: TickerData) -> FilterResult:
        moves = self._historical_moves(data)
        if len(moves) < MIN_EARNINGS_EVENTS:
            return FilterResult.fail(self.name, "insufficient_history", events=len(moves))

        stable = sum(1 for _, move in moves if move < constants.EARNINGS_MOVE_THRESHOLD)
        stable_fraction = stable / len(moves)
        details = {"events": len(moves), "stable_fraction": stable_fraction}
        if stable_fraction < constants.STABILITY_THRESHOLD:
            return FilterResult.fail(self.name, "unstable_earnings", **details)

        implied_move = self._implied_move(data)
        if implied_move is None:
            return FilterResult.fail(self.name, "no_straddle_quote", **details)

        historical_move = self._weighted_average_move(data, moves)
        details.update(implied_move=implied_move, historical_move=historical_move)
        if implied_move < constants.STRADDLE_HISTORICAL_MULTIPLIER * historical_move:
            return FilterResult.fail(self.name, "straddle_underpriced", **details)
        return FilterResult.ok(self.name, **details)

    @staticmethod
    def _historical_moves(data: TickerData) -> List[Tuple]:
        moves = []
        for earnings_date in data.earnings_history:
            move = earnings_move(data.bars, earnings_date)
            if move is not None:
                moves.append((earnings_date, move))
        return moves

    @staticmethod
    def _weighted_average_move(data: TickerData, moves: List[Tuple]) -> float:
        recent_cutoff = data.scan_date - timedelta(days=365 * constants.RECENT_EARNINGS_YEARS)
        total = 0.0
        weights = 0.0
        for earnings_date, move in moves:
            weight = 2.0 if earnings_date >= recent_cutoff else 1.0
            total += weight * move
            weights += weight
        return total / weights if weights else 0.0

    @staticmethod
    def _implied_move(data: TickerData):
        """ATM straddle mid as a fraction of the stock price."""
        target = data.earnings_date + timedelta(days=1)
        call = data.atm_near(target, STRADDLE_WINDOW_DAYS, "call")
        if call is None:
            return None
        put_chain = data.chain(
            target - timedelta(days=STRADDLE_WINDOW_DAYS),
            target + timedelta(days=STRADDLE_WINDOW_DAYS),
            "put",
        )
        put = put_chain.get(call.expiration, call.strike, "put")
        if put is None or call.mid <= 0 or put.mid <= 0 or data.price <= 0:
            return None
        return (call.mid + put.mid) / data.price


class VolatilityCrushFilter(GatekeeperFilter):
    """Realized volatility has historically collapsed after earnings."""

    name = "vol_crush"

    def check(self, data: TickerData) -> FilterResult:
        ratios = []
        for earnings_date in data.earnings_history:
            window = earnings_window_volatility(data.bars, earnings_date)
            if window is None:
                continue
            pre, post = window
            if pre > 0:
                ratios.append(post / pre)

        if len(ratios) < MIN_EARNINGS_EVENTS:
            return FilterResult.fail(self.name, "insufficient_history", events=len(ratios))

        crushes = sum(1 for ratio in ratios if ratio < constants.VOLATILITY_CRUSH_THRESHOLD)
        crush_fraction = crushes / len(ratios)
        details = {"events": len(ratios), "crush_fraction": crush_fraction}
        if crush_fraction < constants.CRUSH_PERCENTAGE:
            return FilterResult.fail(self.name, "no_crush_history", **details)
        return FilterResult.ok(self.name, **details)
