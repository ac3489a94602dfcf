"""
Shared constants for the earnings calendar spread strategy.

This module centralizes thresholds used by the gatekeeper filters, the
portfolio allocator, the spread selector and the order lifecycle monitor,
making it easier to tune parameters and ensure consistency.
"""

# =============================================================================
# Liquidity Thresholds
# =============================================================================

VOLUME_THRESHOLD = 1_500_000
"""Minimum average daily share volume."""

MIN_STOCK_PRICE = 30.0
"""Lowest underlying price accepted by the liquidity filter."""

MAX_STOCK_PRICE = 400.0
"""Highest underlying price accepted by the liquidity filter."""

BID_ASK_THRESHOLD = 0.05
"""Maximum ATM option bid-ask spread as a fraction of mid price."""

QUOTE_DEPTH_THRESHOLD = 200
"""Minimum combined bid size + ask size on the ATM option."""

MIN_DAILY_OPTION_TRADES = 300
"""Minimum contracts traded on the ATM option since the previous session."""

VOLUME_LOOKBACK_DAYS = 90
"""Calendar days of daily bars used for the average volume."""


# =============================================================================
# Volatility Thresholds
# =============================================================================

IV_RATIO_THRESHOLD = 1.20
"""Minimum short-term IV / long-term IV ratio."""

SLOPE_THRESHOLD = 0.05
"""Minimum IV(near) - IV(far) for term structure backwardation."""

TERM_STRUCTURE_HV_SLOPE_THRESHOLD = -0.00406
"""Maximum HV60 - HV30 slope accepted when implied vols are unavailable."""

VOLATILITY_CRUSH_THRESHOLD = 0.80
"""Post/pre earnings volatility ratio below which an event counts as a crush."""

CRUSH_PERCENTAGE = 0.70
"""Minimum fraction of past earnings events that must show a crush."""

VOLATILITY_LOOKBACK_DAYS = 365
"""Calendar days of history for earnings stability and crush analysis."""

CRUSH_WINDOW_DAYS = 7
"""Days on each side of an earnings date used for pre/post volatility."""

TRADING_DAYS_PER_YEAR = 252
"""Annualization factor for historical volatility."""


# =============================================================================
# Execution Spread Thresholds
# =============================================================================

MAX_DEBIT_TO_PRICE_RATIO = 0.04
"""Maximum entry debit as a fraction of the underlying price."""

MAX_LEG_SPREAD_PCT = 20.0
"""Maximum per-leg bid-ask spread (percent of mid) for execution checks."""

MIN_LEG_MID_PRICE = 0.10
"""Minimum per-leg mid price for execution checks."""


# =============================================================================
# Earnings Stability Thresholds
# =============================================================================

EARNINGS_MOVE_THRESHOLD = 0.05
"""Earnings-day move (fraction of price) considered stable."""

STABILITY_THRESHOLD = 0.70
"""Minimum fraction of past earnings moves that must be stable."""

STRADDLE_HISTORICAL_MULTIPLIER = 1.5
"""Implied straddle move must exceed this multiple of the historical move."""

RECENT_EARNINGS_YEARS = 2
"""Earnings events within this many years get double weight."""


# =============================================================================
# Position Sizing
# =============================================================================

BASE_POSITION_SIZE = 0.05
"""Base position size as a fraction of account equity."""

OPTIONAL_FILTER_BONUS = 0.01
"""Position size bonus per optional filter passed."""

MAX_POSITION_SIZE = 0.07
"""Cap on a single candidate's position size."""

MAX_DAILY_PORTFOLIO_ALLOCATION = 0.30
"""Cap on total position size across one scan date."""

MIN_ENTRY_POSITION_SIZE = 0.01
"""Smallest position size the entry phase will trade."""

MAX_ENTRY_POSITION_SIZE = 0.20
"""Largest position size the entry phase will trade."""

MAX_TRADE_EQUITY_FRACTION = 0.08
"""Largest single trade cost as a fraction of account equity."""

CONTRACT_MULTIPLIER = 100
"""Shares per option contract."""


# =============================================================================
# Spread Selection
# =============================================================================

LOOKAHEAD_DAYS = 60
"""Option chain lookahead window (days after today)."""

FAR_TARGET_DAYS = 30
"""Target days to expiration for the far leg."""

STRIKE_MATCH_TOLERANCE = 0.001
"""Tolerance when matching a parsed strike against the chosen ATM strike."""


# =============================================================================
# Order Lifecycle
# =============================================================================

REPRICE_WINDOW_MINUTES = 10
"""Orders younger than this are re-priced on drift."""

ESCALATION_WINDOW_MINUTES = 13
"""Entry orders are cancelled and exits discounted until this age."""

MONITORING_WINDOW_MINUTES = 15
"""Orders older than this are no longer monitored."""

PRICE_DRIFT_THRESHOLD = 0.0005
"""Relative drift between limit and market price that triggers a re-price."""

EXIT_DISCOUNT = 0.97
"""Multiplier applied to market price when escalating an exit order."""

CANCEL_POLL_ATTEMPTS = 10
"""Polls of order status while waiting for a cancel to settle."""

CANCEL_POLL_INTERVAL = 0.5
"""Seconds between cancel-status polls."""


# =============================================================================
# Concurrency
# =============================================================================

DEFAULT_MAX_WORKERS = 10
"""Default bounded worker pool size."""

SYMBOL_BATCH_SIZE = 100
"""Maximum symbols per market data request."""
