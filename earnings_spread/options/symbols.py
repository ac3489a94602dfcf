"""
OCC-style option symbol parsing and formatting.

Symbols have the form UNDERLYING + YYMMDD + C|P + 8-digit strike x 1000,
e.g. "AAPL250117C00150000" is the AAPL 2025-01-17 150.0 call.
"""

import re
from dataclasses import dataclass
from datetime import date

from earnings_spread.exceptions import OptionSymbolError

MIN_SYMBOL_LENGTH = 15

# 6 date digits + type flag + 8 strike digits
_SUFFIX_LENGTH = 15
_SUFFIX_PATTERN = re.compile(r"^(\d{6})([CP])(\d{8})$")


@dataclass(frozen=True)
class ParsedSymbol:
    """
    Components of an option symbol.

    Attributes:
        underlying: Underlying ticker
        expiration: Expiration date
        option_type: "call" or "put"
        strike: Strike price
    """

    underlying: str
    expiration: date
    option_type: str
    strike: float


def parse_option_symbol(symbol: str) -> ParsedSymbol:
    """
    Parse an OCC-style option symbol.

    Args:
        symbol: Option symbol (e.g. "AAPL250117C00150000")

    Returns:
        ParsedSymbol with underlying, expiration, type and strike

    Raises:
        OptionSymbolError: If the symbol is too short, has no C/P type
            marker in the type position, or has malformed date/strike digits
    """
    if not symbol or len(symbol) < MIN_SYMBOL_LENGTH:
        raise OptionSymbolError(f"Invalid option symbol - too short: {symbol!r}")

    symbol = symbol.strip().upper()
    underlying = symbol[:-_SUFFIX_LENGTH]
    suffix = symbol[-_SUFFIX_LENGTH:]

    if suffix[6] not in ("C", "P"):
        raise OptionSymbolError(f"Invalid option symbol - no C/P type marker: {symbol!r}")

    match = _SUFFIX_PATTERN.match(suffix)
    if not match:
        raise OptionSymbolError(f"Invalid option symbol - malformed date or strike: {symbol!r}")

    if not underlying:
        raise OptionSymbolError(f"Invalid option symbol - missing underlying: {symbol!r}")

    date_digits, type_flag, strike_digits = match.groups()
    year = int(date_digits[0:2])
    year += 2000 if year < 50 else 1900
    try:
        expiration = date(year, int(date_digits[2:4]), int(date_digits[4:6]))
    except ValueError as e:
        raise OptionSymbolError(f"Invalid expiration in option symbol {symbol!r}: {e}") from e

    return ParsedSymbol(
        underlying=underlying,
        expiration=expiration,
        option_type="call" if type_flag == "C" else "put",
        strike=int(strike_digits) / 1000.0,
    )


def is_valid_option_symbol(symbol: str) -> bool:
    """Check whether a symbol parses."""
    try:
        parse_option_symbol(symbol)
        return True
    except OptionSymbolError:
        return False


def format_option_symbol(
    underlying: str, expiration: date, option_type: str, strike: float
) -> str:
    """
    Build an OCC-style option symbol.

    Example:
        >>> format_option_symbol("XYZ", date(2025, 1, 17), "call", 100.0)
        'XYZ250117C00100000'
    """
    type_flag = "C" if option_type.lower().startswith("c") else "P"
    return (
        f"{underlying.upper()}{expiration.strftime('%y%m%d')}"
        f"{type_flag}{int(round(strike * 1000)):08d}"
    )
