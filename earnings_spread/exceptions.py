"""Custom exceptions for earnings calendar spread operations."""


class EarningsSpreadError(Exception):
    """Base exception for strategy operations."""

    pass


class ConfigurationError(EarningsSpreadError):
    """Missing or invalid configuration."""

    pass


class InvalidPayloadError(EarningsSpreadError, ValueError):
    """Phase payload could not be interpreted (e.g. a malformed scanDate)."""

    pass


class OptionSymbolError(EarningsSpreadError, ValueError):
    """Option symbol could not be parsed."""

    pass


# Data unavailable: skip the ticker/order and continue the batch


class DataUnavailableError(EarningsSpreadError):
    """Market data needed for a decision is missing."""

    pass


class NoExpirationsFound(DataUnavailableError):
    """Fewer than two usable expirations in the lookahead window."""

    pass


class NoCommonStrike(DataUnavailableError):
    """No strike is listed at both the near and far expirations."""

    pass


class QuoteUnavailableError(DataUnavailableError):
    """No quote returned for a required symbol."""

    pass


# Policy violations: the order is not submitted


class PolicyViolationError(EarningsSpreadError):
    """Order would violate a trading rule."""

    pass


class UncoveredShortError(PolicyViolationError):
    """Short legs exceed long legs for an underlying/expiration group."""

    pass


class ZeroPriceError(PolicyViolationError):
    """Computed debit or credit is zero, so there is no tradeable price."""

    pass


class InvalidSpreadError(PolicyViolationError):
    """Legs do not form a calendar spread."""

    pass


class InsufficientEquityError(PolicyViolationError):
    """Trade cost exceeds buying power or the per-trade equity limit."""

    pass


# External services


class AlpacaAPIError(EarningsSpreadError):
    """Base exception for Alpaca API errors."""

    def __init__(self, message: str, status_code: int = 0, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class AlpacaAuthenticationError(AlpacaAPIError):
    """Credentials rejected by Alpaca (401/403)."""

    pass


class AlpacaRateLimitError(AlpacaAPIError):
    """Rate limit still exceeded after the retry policy was exhausted."""

    pass


class InsufficientFundsError(AlpacaAPIError):
    """
    Brokerage rejected an order for insufficient funds.

    Every later order in the same batch would fail the same way, so the
    entry phase stops submitting when it sees this.
    """

    pass


class FinnhubAPIError(EarningsSpreadError):
    """Finnhub API request failed."""

    pass
