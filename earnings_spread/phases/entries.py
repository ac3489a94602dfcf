"""Entry phase: open calendar spreads for the day's approved candidates.

Candidates are submitted one at a time in order of position size. Buying
power is re-read after each submission, and the batch stops as soon as it
runs out or the brokerage answers with an insufficient-funds rejection.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import pytz
import requests

from earnings_spread import constants
from earnings_spread.alpaca.models import AccountSnapshot, BrokerOrder
from earnings_spread.exceptions import (
    AlpacaAPIError,
    DataUnavailableError,
    InsufficientFundsError,
    PolicyViolationError,
)
from earnings_spread.filters.pipeline import Candidate
from earnings_spread.monitor import MonitoredOrder, OrderKind
from earnings_spread.options.selector import CalendarSpreadSelector
from earnings_spread.orders.equity import PortfolioEquityValidator
from earnings_spread.orders.legs import build_entry_order
from earnings_spread.results import skipped_result, success_result

from .context import PhaseContext, market_gate, phase, resolve_scan_date

logger = logging.getLogger(__name__)


def tradeable_candidates(
    candidates: List[Candidate], min_size: float, max_size: float
) -> List[Candidate]:
    """Approved candidates whose size falls inside [min_size, max_size]."""
    kept = []
    for candidate in candidates:
        if candidate.approved and min_size <= candidate.position_size_pct <= max_size:
            kept.append(candidate)
        else:
            logger.info(
                f"Skipping {candidate.ticker}: position size "
                f"{candidate.position_size_pct:.4f} outside [{min_size}, {max_size}]"
            )
    return kept


class EntryTrader:
    """Select, price, validate, submit and track one entry spread."""

    def __init__(
        self,
        context: PhaseContext,
        selector: Optional[CalendarSpreadSelector] = None,
        validator: Optional[PortfolioEquityValidator] = None,
    ):
        self.context = context
        self.client = context.client
        self.selector = selector or CalendarSpreadSelector(context.client)
        self.validator = validator or PortfolioEquityValidator()

    def enter(self, candidate: Candidate, account: AccountSnapshot) -> Optional[BrokerOrder]:
        """
        Open the spread for one candidate.

        Returns:
            The submitted order, or None when the budget buys no contracts

        Raises:
            DataUnavailableError: Chain, strike or quotes missing
            PolicyViolationError: Zero debit, invalid spread or not enough equity
            InsufficientFundsError: Brokerage rejected for funds
        """
        ticker = candidate.ticker
        price = self.client.get_latest_price(ticker)
        target = account.equity * candidate.position_size_pct
        priced = self.selector.price_entry(ticker, price, target, today=self.context.today())
        if priced.quantity < 1:
            logger.info(f"{ticker}: budget ${target:,.2f} buys no contracts at {priced.debit:.2f}")
            return None

        limit_price = round(priced.debit, 2)
        trade_value = limit_price * priced.quantity * constants.CONTRACT_MULTIPLIER
        self.validator.validate(trade_value, account)

        order = build_entry_order(
            priced.selection.near_symbol,
            priced.selection.far_symbol,
            priced.quantity,
            limit_price,
        )
        submitted = self.client.submit_order(order)
        self._track(ticker, order, submitted)
        return submitted

    def _track(self, ticker, order, submitted: BrokerOrder) -> None:
        record = MonitoredOrder(
            order_id=submitted.id,
            ticker=ticker,
            trade_type=OrderKind.ENTRY,
            legs=list(order.legs),
            qty=order.qty,
            submission_time=submitted.submitted_at or datetime.now(pytz.utc),
            limit_price=order.limit_price,
        )
        self.context.repository.track_order(record)


@phase("initiate_trades")
def run_initiate_trades(payload: Dict[str, Any], context: PhaseContext) -> Dict[str, Any]:
    """Submit entry orders for the scan date's approved candidates."""
    scan_date = resolve_scan_date(payload, context.today())

    gate = market_gate(context)
    if gate is not None:
        return gate

    account = context.client.get_account()
    if account.equity <= 0:
        return skipped_result("no_account_equity", account_equity=account.equity)

    approved = context.repository.get_candidates(scan_date, approved_only=True)
    settings = context.settings
    candidates = tradeable_candidates(approved, settings.min_entry_size, settings.max_entry_size)

    trader = EntryTrader(context)
    equity = account.equity
    submitted = rejected = 0
    skipped = len(approved) - len(candidates)
    halted_reason = None
    attempted = 0

    for candidate in candidates:
        attempted += 1
        try:
            order = trader.enter(candidate, account)
        except InsufficientFundsError as e:
            rejected += 1
            halted_reason = "insufficient_funds"
            logger.warning(f"{candidate.ticker}: insufficient funds, halting entries: {e}")
            break
        except PolicyViolationError as e:
            rejected += 1
            logger.warning(f"{candidate.ticker}: order rejected: {e}")
            continue
        except (DataUnavailableError, AlpacaAPIError, requests.exceptions.RequestException) as e:
            skipped += 1
            logger.error(f"{candidate.ticker}: skipped: {e}", exc_info=True)
            continue

        if order is None:
            skipped += 1
            continue

        submitted += 1
        account = context.client.get_account()
        if account.buying_power <= 0:
            halted_reason = "buying_power_exhausted"
            logger.warning(
                f"Buying power exhausted after {candidate.ticker}, "
                f"skipping {len(candidates) - attempted} remaining candidates"
            )
            break

    # candidates never attempted after a halt
    skipped += len(candidates) - attempted

    return success_result(
        f"Submitted {submitted} entry orders",
        scan_date=scan_date.isoformat(),
        account_equity=equity,
        orders_submitted=submitted,
        orders_rejected=rejected,
        orders_skipped=skipped,
        halted=halted_reason,
    )
