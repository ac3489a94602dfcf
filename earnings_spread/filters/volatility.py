"""
Realized volatility helpers for the gatekeeper filters.

All volatility values are expressed as decimals (e.g., 0.25 = 25%
annualized volatility).

Close-to-Close: σ = sqrt(252 * Σ(r_i - r_mean)² / (n - ddof))
where r_i = ln(P_i / P_{i-1})
"""

import logging
import math
from datetime import date, timedelta
from typing import List, Optional, Sequence

from earnings_spread import constants
from earnings_spread.alpaca.models import DailyBar

logger = logging.getLogger(__name__)


def log_returns(closes: Sequence[float]) -> List[float]:
    """Log returns of consecutive closes; non-positive prices are skipped."""
    returns = []
    for previous, current in zip(closes, closes[1:]):
        if previous > 0 and current > 0:
            returns.append(math.log(current / previous))
    return returns


def close_to_close_volatility(
    closes: Sequence[float],
    annualize: bool = True,
    ddof: int = 1,
) -> Optional[float]:
    """
    Close-to-close realized volatility.

    Args:
        closes: Closing prices (oldest to newest)
        annualize: Multiply by √252
        ddof: 1 for sample variance, 0 for population variance

    Returns:
        Volatility, or None with fewer returns than the variance needs
    """
    returns = log_returns(closes)
    if len(returns) <= ddof or not returns:
        return None

    mean_return = sum(returns) / len(returns)
    variance = sum((r - mean_return) ** 2 for r in returns) / (len(returns) - ddof)
    volatility = math.sqrt(variance)
    if annualize:
        volatility *= math.sqrt(constants.TRADING_DAYS_PER_YEAR)
    return volatility


def historical_volatility(bars: Sequence[DailyBar], window: int) -> Optional[float]:
    """Annualized volatility over the most recent `window` bars."""
    recent = list(bars)[-window:]
    if len(recent) < 2:
        return None
    return close_to_close_volatility([bar.close for bar in recent])


def average_volume(bars: Sequence[DailyBar]) -> float:
    if not bars:
        return 0.0
    return sum(bar.volume for bar in bars) / len(bars)


def bars_between(bars: Sequence[DailyBar], start: date, end: date) -> List[DailyBar]:
    """Bars with start <= day <= end."""
    return [bar for bar in bars if start <= bar.day <= end]


def earnings_window_volatility(
    bars: Sequence[DailyBar],
    earnings_date: date,
    window_days: int = constants.CRUSH_WINDOW_DAYS,
) -> Optional[tuple]:
    """
    Pre and post earnings volatility around an event.

    Pre covers earnings-window_days .. earnings-1, post covers
    earnings+1 .. earnings+window_days (calendar days), both annualized with
    population variance.

    Returns:
        (pre_volatility, post_volatility), or None if either side lacks data
    """
    pre = bars_between(
        bars,
        earnings_date - timedelta(days=window_days),
        earnings_date - timedelta(days=1),
    )
    post = bars_between(
        bars,
        earnings_date + timedelta(days=1),
        earnings_date + timedelta(days=window_days),
    )
    pre_vol = close_to_close_volatility([bar.close for bar in pre], ddof=0)
    post_vol = close_to_close_volatility([bar.close for bar in post], ddof=0)
    if pre_vol is None or post_vol is None:
        return None
    return pre_vol, post_vol


def earnings_move(bars: Sequence[DailyBar], earnings_date: date) -> Optional[float]:
    """
    Absolute one-day move on the first session on/after an earnings date.

    Returns:
        |close - prev_close| / prev_close, or None without a prior session
    """
    ordered = sorted(bars, key=lambda bar: bar.day)
    for index, bar in enumerate(ordered):
        if bar.day >= earnings_date:
            if index == 0:
                return None
            previous = ordered[index - 1].close
            if previous <= 0:
                return None
            return abs(bar.close - previous) / previous
    return None
