"""Exit phase: close the calendar spreads held overnight through earnings."""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Sequence, Tuple

import pytz

from earnings_spread.alpaca.models import BrokerOrder, Position
from earnings_spread.exceptions import DataUnavailableError, OptionSymbolError
from earnings_spread.monitor import MonitoredOrder, OrderKind, closing_credit
from earnings_spread.options.symbols import parse_option_symbol
from earnings_spread.orders.legs import OrderType, build_exit_order
from earnings_spread.results import success_result
from earnings_spread.workers import run_bounded

from .context import PhaseContext, market_gate, phase

logger = logging.getLogger(__name__)


def group_by_underlying(positions: Sequence[Position]) -> Dict[str, List[Position]]:
    """Option positions keyed by underlying; unparseable symbols are dropped."""
    groups: Dict[str, List[Position]] = defaultdict(list)
    for position in positions:
        if not position.is_option:
            continue
        try:
            parsed = parse_option_symbol(position.symbol)
        except OptionSymbolError:
            logger.warning(f"Ignoring position with unparseable symbol {position.symbol}")
            continue
        groups[parsed.underlying].append(position)
    return dict(groups)


def held_calendar(positions: Sequence[Position]) -> Tuple[Position, Position]:
    """
    (near, far) when the positions form a held calendar spread: a short near
    leg and a long far leg of the same type and strike in equal size.

    Raises:
        ValueError: If the positions are anything else
    """
    if len(positions) != 2:
        raise ValueError(f"expected 2 option positions, found {len(positions)}")
    near, far = sorted(positions, key=lambda p: parse_option_symbol(p.symbol).expiration)
    near_parsed = parse_option_symbol(near.symbol)
    far_parsed = parse_option_symbol(far.symbol)

    if near_parsed.expiration == far_parsed.expiration:
        raise ValueError("legs share an expiration")
    if near_parsed.option_type != far_parsed.option_type:
        raise ValueError("legs mix calls and puts")
    if abs(near_parsed.strike - far_parsed.strike) > 1e-6:
        raise ValueError("legs have different strikes")
    if near.side != "short" or far.side != "long":
        raise ValueError("expected short near leg and long far leg")
    if abs(float(near.qty)) != abs(float(far.qty)):
        raise ValueError("leg quantities differ")
    return near, far


class ExitTrader:
    """Price, submit and track the closing order for one held spread."""

    def __init__(self, context: PhaseContext):
        self.context = context
        self.client = context.client

    def exit(self, spread: Tuple[Position, Position]) -> BrokerOrder:
        """
        Close a spread with a limit order at the current closing credit, or a
        market order when there is no positive credit to ask for.
        """
        near, far = spread
        try:
            quotes = self.client.get_option_quotes([near.symbol, far.symbol])
            credit = round(closing_credit(near.symbol, far.symbol, quotes), 2)
        except DataUnavailableError as e:
            logger.warning(f"No closing quote for {near.symbol}/{far.symbol}: {e}")
            credit = 0.0

        if credit > 0:
            order = build_exit_order([near, far], OrderType.LIMIT, credit)
        else:
            order = build_exit_order([near, far], OrderType.MARKET)

        submitted = self.client.submit_order(order)
        record = MonitoredOrder(
            order_id=submitted.id,
            ticker=parse_option_symbol(far.symbol).underlying,
            trade_type=OrderKind.EXIT,
            legs=list(order.legs),
            qty=order.qty,
            submission_time=submitted.submitted_at or datetime.now(pytz.utc),
            limit_price=order.limit_price,
        )
        self.context.repository.track_order(record)
        return submitted


@phase("initiate_exit_trades")
def run_initiate_exit_trades(payload: Dict[str, Any], context: PhaseContext) -> Dict[str, Any]:
    """Submit closing orders for every held calendar spread."""
    gate = market_gate(context)
    if gate is not None:
        return gate

    groups = group_by_underlying(context.client.get_positions())
    spreads = []
    for underlying, positions in sorted(groups.items()):
        try:
            spreads.append(held_calendar(positions))
        except ValueError as e:
            logger.info(f"{underlying}: not a calendar spread ({e}), leaving positions alone")

    trader = ExitTrader(context)
    results = run_bounded(trader.exit, spreads, context.settings.max_workers)
    submitted = sum(1 for r in results if r.ok)

    return success_result(
        f"Submitted {submitted} exit orders",
        spreads_processed=len(spreads),
        exits_submitted=submitted,
        exits_failed=len(spreads) - submitted,
    )
