"""Account equity checks applied before an entry order is submitted."""

import logging

from earnings_spread import constants
from earnings_spread.exceptions import InsufficientEquityError

logger = logging.getLogger(__name__)


class PortfolioEquityValidator:
    """
    Validate a trade's cost against the account.

    A trade must fit within current buying power and must not exceed a
    fixed fraction of account equity.
    """

    def __init__(self, max_trade_fraction: float = constants.MAX_TRADE_EQUITY_FRACTION):
        if not 0 < max_trade_fraction <= 1:
            raise ValueError("max_trade_fraction must be in (0, 1]")
        self.max_trade_fraction = max_trade_fraction

    def has_sufficient_equity(self, trade_value: float, account) -> bool:
        """
        Check a trade against an account snapshot.

        Args:
            trade_value: Dollar cost of the trade
            account: AccountSnapshot with equity, buying_power and cash

        Returns:
            True if both buying power and per-trade equity limits allow it
        """
        max_trade_value = account.equity * self.max_trade_fraction
        enough_buying_power = trade_value <= account.buying_power
        within_limit = trade_value <= max_trade_value

        logger.info(
            f"Trading validation: trade=${trade_value:,.2f}, "
            f"buying_power=${account.buying_power:,.2f}, equity=${account.equity:,.2f}, "
            f"cash=${account.cash:,.2f}, max_trade=${max_trade_value:,.2f}, "
            f"buying_power_ok={enough_buying_power}, limit_ok={within_limit}"
        )
        return enough_buying_power and within_limit

    def validate(self, trade_value: float, account) -> None:
        """
        Raise if the trade is not affordable.

        Raises:
            InsufficientEquityError: If either limit is exceeded
        """
        if not self.has_sufficient_equity(trade_value, account):
            raise InsufficientEquityError(
                f"Trade value ${trade_value:,.2f} exceeds buying power "
                f"${account.buying_power:,.2f} or {self.max_trade_fraction:.0%} of equity"
            )
