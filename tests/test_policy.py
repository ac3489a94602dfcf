"""Tests for the order lifecycle policy and state machine."""

from datetime import timedelta

import pytest

from earnings_spread.monitor.policy import (
    Action,
    LifecycleState,
    OrderKind,
    decide_action,
    get_next_state,
    is_past_window,
    is_terminal,
    price_drift,
    target_price,
)


def minutes(value: float) -> timedelta:
    return timedelta(minutes=value)


class TestDecideAction:
    def test_entry_at_eleven_minutes_is_cancelled_not_repriced(self):
        assert decide_action(OrderKind.ENTRY, minutes(11), drift=0.5) is Action.CANCEL

    def test_exit_at_fourteen_minutes_converts_to_market(self):
        assert decide_action(OrderKind.EXIT, minutes(14), drift=0.0) is Action.CONVERT_TO_MARKET

    def test_reprice_on_drift_inside_first_window(self):
        assert decide_action(OrderKind.ENTRY, minutes(3), drift=0.01) is Action.REPRICE

    def test_hold_without_drift(self):
        assert decide_action(OrderKind.EXIT, minutes(3), drift=0.0001) is Action.HOLD

    def test_drift_threshold_is_strict(self):
        assert decide_action(OrderKind.ENTRY, minutes(1), drift=0.0005) is Action.HOLD

    def test_exit_escalates_between_ten_and_thirteen(self):
        assert decide_action(OrderKind.EXIT, minutes(10), drift=0.0) is Action.REPRICE
        assert decide_action(OrderKind.EXIT, minutes(12.9), drift=0.0) is Action.REPRICE

    def test_entry_after_thirteen_minutes_holds(self):
        assert decide_action(OrderKind.ENTRY, minutes(13.5), drift=1.0) is Action.HOLD

    def test_boundaries(self):
        assert decide_action(OrderKind.ENTRY, minutes(10), drift=0.0) is Action.CANCEL
        assert decide_action(OrderKind.EXIT, minutes(13), drift=0.0) is Action.CONVERT_TO_MARKET


class TestTargetPrice:
    def test_entry_reprices_at_market(self):
        assert target_price(OrderKind.ENTRY, minutes(2), 1.234) == 1.23

    def test_exit_escalation_applies_discount(self):
        assert target_price(OrderKind.EXIT, minutes(11), 1.00) == 0.97

    def test_exit_before_escalation_at_market(self):
        assert target_price(OrderKind.EXIT, minutes(5), 1.00) == 1.00

    def test_no_price_without_market(self):
        assert target_price(OrderKind.ENTRY, minutes(2), 0.0) is None
        assert target_price(OrderKind.EXIT, minutes(11), 0.004) is None


class TestPriceDrift:
    def test_relative_drift(self):
        assert price_drift(1.10, 1.00) == pytest.approx(0.10)
        assert price_drift(0.90, 1.00) == pytest.approx(0.10)

    def test_zero_limit(self):
        assert price_drift(1.0, 0.0) == 0.0


class TestStateMachine:
    def test_transitions_from_monitoring(self):
        assert get_next_state(LifecycleState.MONITORING, Action.REPRICE) is LifecycleState.REPRICED
        assert get_next_state(LifecycleState.MONITORING, Action.CANCEL) is LifecycleState.CANCELLED
        assert (
            get_next_state(LifecycleState.MONITORING, Action.CONVERT_TO_MARKET)
            is LifecycleState.CONVERTED_TO_MARKET
        )

    def test_hold_keeps_state(self):
        assert get_next_state(LifecycleState.MONITORING, Action.HOLD) is LifecycleState.MONITORING

    @pytest.mark.parametrize(
        "state",
        [
            LifecycleState.REPRICED,
            LifecycleState.CANCELLED,
            LifecycleState.CONVERTED_TO_MARKET,
            LifecycleState.EXPIRED,
        ],
    )
    def test_terminal_states(self, state):
        assert is_terminal(state)
        with pytest.raises(ValueError, match="Invalid action"):
            get_next_state(state, Action.CANCEL)

    def test_monitoring_not_terminal(self):
        assert not is_terminal(LifecycleState.MONITORING)

    def test_entry_window_expiry(self):
        assert is_past_window(OrderKind.ENTRY, minutes(15))
        assert not is_past_window(OrderKind.ENTRY, minutes(14.9))
        assert not is_past_window(OrderKind.EXIT, minutes(30))
