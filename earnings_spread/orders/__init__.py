"""
Multi-leg calendar spread order construction and pre-trade checks.
"""

from .equity import PortfolioEquityValidator
from .legs import (
    CalendarSpreadLeg,
    CalendarSpreadOrder,
    OrderType,
    PositionIntent,
    Side,
    build_entry_order,
    build_exit_order,
    check_covered_shorts,
    gcd,
    is_calendar_spread,
    rebuild_order,
    reduce_ratios,
)

__all__ = [
    "PortfolioEquityValidator",
    "CalendarSpreadLeg",
    "CalendarSpreadOrder",
    "OrderType",
    "PositionIntent",
    "Side",
    "build_entry_order",
    "build_exit_order",
    "check_covered_shorts",
    "gcd",
    "is_calendar_spread",
    "rebuild_order",
    "reduce_ratios",
]
