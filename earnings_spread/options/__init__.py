"""
Option chain indexing, symbol parsing and calendar spread selection.
"""

from .chain import OptionChainIndex, closest_strike
from .models import OptionContract, OptionQuote
from .selector import CalendarSpreadSelector, PricedSpread, SpreadSelection
from .symbols import ParsedSymbol, format_option_symbol, parse_option_symbol

__all__ = [
    "OptionChainIndex",
    "closest_strike",
    "OptionContract",
    "OptionQuote",
    "CalendarSpreadSelector",
    "PricedSpread",
    "SpreadSelection",
    "ParsedSymbol",
    "format_option_symbol",
    "parse_option_symbol",
]
