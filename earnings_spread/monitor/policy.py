"""
Order lifecycle policy.

A pure function of order kind, time since submission and price drift. The
monitor rebuilds every decision from these inputs on each tick, so running
the same tick twice yields the same actions.

    elapsed < 10 min        drift > threshold -> REPRICE at market, else HOLD
    10 <= elapsed < 13 min  entry -> CANCEL; exit -> REPRICE at discount x market
    elapsed >= 13 min       exit -> CONVERT_TO_MARKET; entry -> HOLD
"""

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Optional

from earnings_spread import constants


class OrderKind(Enum):
    """Opening (entry) or closing (exit) calendar spread order."""

    ENTRY = "entry"
    EXIT = "exit"


class Action(Enum):
    """What the monitor does to an open order on this tick."""

    HOLD = "hold"
    REPRICE = "reprice"
    CANCEL = "cancel"
    CONVERT_TO_MARKET = "convert_to_market"


class LifecycleState(Enum):
    """
    Lifecycle of a monitored order.

    Every state other than MONITORING is terminal for that order id. A
    re-priced or converted order is replaced by a new order whose tracking
    record starts again in MONITORING and keeps the original submission time.
    """

    MONITORING = "monitoring"
    REPRICED = "repriced"
    CANCELLED = "cancelled"
    CONVERTED_TO_MARKET = "converted_to_market"
    EXPIRED = "expired"


# Valid state transitions for a monitored order
VALID_TRANSITIONS: dict[LifecycleState, dict[Action, LifecycleState]] = {
    LifecycleState.MONITORING: {
        Action.REPRICE: LifecycleState.REPRICED,
        Action.CANCEL: LifecycleState.CANCELLED,
        Action.CONVERT_TO_MARKET: LifecycleState.CONVERTED_TO_MARKET,
    },
    LifecycleState.REPRICED: {},
    LifecycleState.CANCELLED: {},
    LifecycleState.CONVERTED_TO_MARKET: {},
    LifecycleState.EXPIRED: {},
}


def is_terminal(state: LifecycleState) -> bool:
    return not VALID_TRANSITIONS.get(state)


def get_next_state(from_state: LifecycleState, action: Action) -> LifecycleState:
    """
    Get the state after applying an action. HOLD never changes state.

    Raises:
        ValueError: If the transition is not valid.
    """
    if action is Action.HOLD:
        return from_state
    transitions = VALID_TRANSITIONS.get(from_state, {})
    if action not in transitions:
        raise ValueError(
            f"Invalid action '{action.value}' from state '{from_state.value}'. "
            f"Valid actions: {[a.value for a in transitions]}"
        )
    return transitions[action]


REPRICE_WINDOW = timedelta(minutes=constants.REPRICE_WINDOW_MINUTES)
ESCALATION_WINDOW = timedelta(minutes=constants.ESCALATION_WINDOW_MINUTES)
MONITORING_WINDOW = timedelta(minutes=constants.MONITORING_WINDOW_MINUTES)


def price_drift(market_price: float, limit_price: float) -> float:
    """|market - limit| / limit; 0 when there is no positive limit."""
    if limit_price <= 0:
        return 0.0
    return abs(market_price - limit_price) / limit_price


def is_past_window(kind: OrderKind, elapsed: timedelta) -> bool:
    """Entry orders stop being monitored once the monitoring window has elapsed."""
    return kind is OrderKind.ENTRY and elapsed >= MONITORING_WINDOW


def decide_action(
    kind: OrderKind,
    elapsed: timedelta,
    drift: float,
    drift_threshold: float = constants.PRICE_DRIFT_THRESHOLD,
) -> Action:
    """
    Decide what to do with an open order.

    Args:
        kind: Entry or exit
        elapsed: Time since the order (or the order it replaced) was first submitted
        drift: Relative drift between market price and limit price
        drift_threshold: Drift above which an order is re-priced

    Returns:
        Action for this tick
    """
    if elapsed < REPRICE_WINDOW:
        return Action.REPRICE if drift > drift_threshold else Action.HOLD
    if elapsed < ESCALATION_WINDOW:
        return Action.CANCEL if kind is OrderKind.ENTRY else Action.REPRICE
    if kind is OrderKind.EXIT:
        return Action.CONVERT_TO_MARKET
    return Action.HOLD


def target_price(
    kind: OrderKind,
    elapsed: timedelta,
    market_price: float,
    exit_discount: float = constants.EXIT_DISCOUNT,
) -> Optional[float]:
    """
    New limit price for a REPRICE decision.

    Exit orders in the escalation window are re-priced below market;
    everything else is re-priced at market. Rounded to cents.
    """
    if market_price <= 0:
        return None
    price = market_price
    if kind is OrderKind.EXIT and REPRICE_WINDOW <= elapsed < ESCALATION_WINDOW:
        price = market_price * exit_discount
    price = round(price, 2)
    return price if price > 0 else None


@dataclass(frozen=True)
class Decision:
    """Action and (for REPRICE) the new limit price."""

    action: Action
    limit_price: Optional[float] = None
