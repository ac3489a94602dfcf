"""
Order lifecycle monitor.

Each tick reads the open orders from the brokerage and applies the
lifecycle policy to every open multi-leg limit order:

- HOLD: nothing
- REPRICE: cancel, wait for the cancel to settle, resubmit at the new limit
- CANCEL: cancel only
- CONVERT_TO_MARKET: cancel, wait, resubmit the same legs as a market order

Elapsed time is measured from the first submission in an order's chain
(kept in the order-tracking table), so a re-priced order does not restart
its window.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional

import pytz

from earnings_spread import constants
from earnings_spread.alpaca.models import BrokerOrder
from earnings_spread.exceptions import QuoteUnavailableError
from earnings_spread.options.models import OptionQuote
from earnings_spread.options.selector import CalendarSpreadSelector
from earnings_spread.orders.legs import OrderType, rebuild_order
from earnings_spread.workers import run_bounded

from .models import MonitoredOrder
from .policy import (
    ESCALATION_WINDOW,
    REPRICE_WINDOW,
    Action,
    Decision,
    LifecycleState,
    OrderKind,
    decide_action,
    get_next_state,
    is_past_window,
    is_terminal,
    price_drift,
    target_price,
)

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(pytz.utc)


def closing_credit(near_symbol: str, far_symbol: str, quotes: Dict[str, OptionQuote]) -> float:
    """Credit for closing a held calendar: max(0, far bid - near ask)."""
    near = quotes.get(near_symbol)
    far = quotes.get(far_symbol)
    if near is None or far is None:
        raise QuoteUnavailableError(f"No quotes for {near_symbol} / {far_symbol}")
    return max(0.0, far.bid - near.ask)


@dataclass
class MonitorReport:
    """Counts from one monitoring tick."""

    orders_monitored: int = 0
    orders_processed: int = 0
    orders_updated: int = 0
    orders_canceled: int = 0
    orders_converted: int = 0
    orders_failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class OrderLifecycleMonitor:
    """
    Apply the lifecycle policy to open orders.

    Example:
        monitor = OrderLifecycleMonitor(alpaca_client, repository)
        report = monitor.tick()
    """

    def __init__(
        self,
        client,
        repository=None,
        drift_threshold: float = constants.PRICE_DRIFT_THRESHOLD,
        exit_discount: float = constants.EXIT_DISCOUNT,
        now: Callable[[], datetime] = _utc_now,
        max_workers: int = constants.DEFAULT_MAX_WORKERS,
    ):
        """
        Args:
            client: AlpacaClient
            repository: DailyRepository holding order tracking records (optional)
            drift_threshold: Relative drift that triggers a re-price
            exit_discount: Multiplier for escalated exit prices
            now: Clock returning an aware UTC datetime
            max_workers: Orders processed concurrently
        """
        self.client = client
        self.repository = repository
        self.drift_threshold = drift_threshold
        self.exit_discount = exit_discount
        self.now = now
        self.max_workers = max_workers

    def tick(self, orders: Optional[List[BrokerOrder]] = None) -> MonitorReport:
        """
        Process every open order once.

        Args:
            orders: Open orders (fetched from the brokerage when omitted)

        Returns:
            MonitorReport with per-action counts
        """
        if orders is None:
            orders = self.client.list_open_orders()
        report = MonitorReport(orders_monitored=len(orders))
        now = self.now()

        results = run_bounded(lambda order: self._process(order, now), orders, self.max_workers)
        for result in results:
            if not result.ok:
                report.orders_failed += 1
                continue
            outcome = result.value
            if outcome is None:
                continue
            report.orders_processed += 1
            if outcome is Action.CANCEL:
                report.orders_canceled += 1
            elif outcome is Action.CONVERT_TO_MARKET:
                report.orders_converted += 1
            elif outcome is Action.REPRICE:
                report.orders_updated += 1

        logger.info(f"Monitoring tick complete: {report.to_dict()}")
        return report

    def _tracked(self, order: BrokerOrder) -> MonitoredOrder:
        """Tracking record for a broker order, created on first sight."""
        record = self.repository.get_tracked_order(order.id) if self.repository else None
        if record is not None:
            return record

        submitted = order.submitted_at or self.now()
        record = MonitoredOrder(
            order_id=order.id,
            ticker=order.far_leg.underlying,
            trade_type=OrderKind.ENTRY if order.is_entry else OrderKind.EXIT,
            legs=list(order.legs),
            qty=order.qty,
            submission_time=submitted,
            limit_price=order.limit_price,
        )
        if self.repository:
            self.repository.track_order(record)
        return record

    def market_price(self, record: MonitoredOrder, order: BrokerOrder) -> float:
        """Current spread price: entry debit or exit closing credit."""
        near = order.near_leg.symbol
        far = order.far_leg.symbol
        quotes = self.client.get_option_quotes([near, far])
        if record.trade_type is OrderKind.ENTRY:
            return CalendarSpreadSelector.price_debit(near, far, quotes)
        return closing_credit(near, far, quotes)

    def plan(self, record: MonitoredOrder, order: BrokerOrder, now: datetime) -> Decision:
        """Decide the action (and new limit) for one order."""
        elapsed = record.elapsed(now)
        kind = record.trade_type

        needs_price = elapsed < REPRICE_WINDOW or (
            kind is OrderKind.EXIT and elapsed < ESCALATION_WINDOW
        )
        market = self.market_price(record, order) if needs_price else 0.0
        limit = order.limit_price or record.limit_price or 0.0
        action = decide_action(kind, elapsed, price_drift(market, limit), self.drift_threshold)

        if action is Action.REPRICE:
            new_limit = target_price(kind, elapsed, market, self.exit_discount)
            if new_limit is None:
                logger.info(f"Order {order.id}: no tradeable market price, holding")
                return Decision(Action.HOLD)
            return Decision(Action.REPRICE, new_limit)
        return Decision(action)

    def _process(self, order: BrokerOrder, now: datetime) -> Optional[Action]:
        """
        Apply the policy to one order.

        Returns:
            The action carried out (HOLD when nothing changed), or None when
            the order is not monitored at all
        """
        if not order.is_multi_leg or len(order.legs) != 2:
            logger.debug(f"Skipping non-multi-leg order {order.id}")
            return None
        if order.order_type != OrderType.LIMIT.value:
            logger.debug(f"Skipping {order.order_type} order {order.id}")
            return None

        record = self._tracked(order)
        if is_terminal(record.state):
            logger.debug(f"Order {order.id} already {record.state.value}")
            return None

        if is_past_window(record.trade_type, record.elapsed(now)):
            record.state = LifecycleState.EXPIRED
            self._save(record)
            logger.info(f"Order {order.id} past monitoring window, no longer monitored")
            return Action.HOLD

        decision = self.plan(record, order, now)
        if decision.action is Action.HOLD:
            return Action.HOLD

        next_state = get_next_state(record.state, decision.action)
        logger.info(
            f"Order {order.id} ({record.trade_type.value}, "
            f"{record.elapsed(now).total_seconds() / 60:.1f} min): {decision.action.value}"
        )

        if decision.action is Action.CANCEL:
            self.client.cancel_order(order.id)
            record.state = next_state
            self._save(record)
            return Action.CANCEL

        order_type = OrderType.MARKET if decision.action is Action.CONVERT_TO_MARKET else OrderType.LIMIT
        replacement = rebuild_order(order.legs, order.qty, order_type, decision.limit_price)

        self.client.cancel_order(order.id)
        if not self.client.wait_for_cancellation(order.id):
            logger.warning(f"Order {order.id} cancel not confirmed, not resubmitting")
            return Action.HOLD

        submitted = self.client.submit_order(replacement)
        record.state = next_state
        record.replaced_by = submitted.id
        self._save(record)
        self._save(record.replacement(submitted.id, decision.limit_price))
        return decision.action

    def _save(self, record: MonitoredOrder) -> None:
        if self.repository:
            self.repository.track_order(record)
