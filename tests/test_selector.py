"""Tests for the option chain index and calendar spread selector."""

from datetime import date, timedelta
from unittest.mock import Mock

import pytest

from earnings_spread.exceptions import (
    NoCommonStrike,
    NoExpirationsFound,
    QuoteUnavailableError,
    ZeroPriceError,
)
from earnings_spread.options import (
    CalendarSpreadSelector,
    OptionChainIndex,
    OptionContract,
    OptionQuote,
    closest_strike,
    format_option_symbol,
)

TODAY = date(2025, 1, 15)


def make_contract(expiration: date, strike: float, bid: float = 1.0, ask: float = 1.1, **kwargs):
    option_type = kwargs.pop("option_type", "call")
    return OptionContract(
        symbol=format_option_symbol("XYZ", expiration, option_type, strike),
        underlying="XYZ",
        expiration=expiration,
        strike=strike,
        option_type=option_type,
        bid=bid,
        ask=ask,
        **kwargs,
    )


@pytest.fixture
def xyz_contracts():
    near = TODAY + timedelta(days=5)
    far = TODAY + timedelta(days=32)
    return [
        make_contract(near, 100.0, bid=2.00, ask=2.20),
        make_contract(far, 100.0, bid=3.00, ask=3.20),
    ]


class TestClosestStrike:
    def test_picks_nearest(self):
        assert closest_strike([90, 95, 100, 105], 98) == 100

    def test_tie_resolves_to_lower_strike(self):
        assert closest_strike([105, 95], 100) == 95

    def test_empty(self):
        assert closest_strike([], 100) is None


class TestOptionChainIndex:
    def test_lookups(self, xyz_contracts):
        index = OptionChainIndex("xyz", xyz_contracts)
        near, far = TODAY + timedelta(days=5), TODAY + timedelta(days=32)

        assert index.underlying == "XYZ"
        assert len(index) == 2
        assert index.expirations == [near, far]
        assert index.get(near, 100.0).bid == 2.00
        assert index.get(near, 105.0) is None
        assert index.common_strikes(near, far) == [100.0]
        assert index.expirations_between(TODAY, TODAY + timedelta(days=10)) == [near]
        assert index.first_expiration_after(near) == far

    def test_nearest_expiration_within_window(self, xyz_contracts):
        index = OptionChainIndex("XYZ", xyz_contracts)

        assert index.nearest_expiration(TODAY + timedelta(days=30), 5) == TODAY + timedelta(days=32)
        assert index.nearest_expiration(TODAY + timedelta(days=60), 5) is None

    def test_atm_contract(self):
        exp = TODAY + timedelta(days=7)
        index = OptionChainIndex("XYZ", [make_contract(exp, s) for s in (95.0, 100.0, 105.0)])

        assert index.atm_contract(exp, 102.4).strike == 100.0
        assert index.atm_contract(exp, 102.5).strike == 100.0
        assert index.atm_contract(exp, 103.0).strike == 105.0
        assert index.atm_contract(exp, 100.0, "put") is None

    def test_empty_index_is_falsy(self):
        assert not OptionChainIndex("XYZ", [])


class TestCalendarSpreadSelector:
    def test_end_to_end_scenario(self, xyz_contracts):
        """XYZ at 100: near T+5 and far T+32 at strike 100, debit 3.20 - 2.00."""
        client = Mock()
        client.get_option_chain.return_value = xyz_contracts
        client.get_option_quotes.return_value = {
            c.symbol: OptionQuote(c.symbol, c.bid, c.ask) for c in xyz_contracts
        }
        selector = CalendarSpreadSelector(client)

        priced = selector.price_entry("XYZ", 100.0, target_dollars=1000.0, today=TODAY)

        assert priced.selection.near_expiration == TODAY + timedelta(days=5)
        assert priced.selection.far_expiration == TODAY + timedelta(days=32)
        assert priced.selection.strike == 100.0
        assert priced.debit == pytest.approx(1.20)
        assert priced.quantity == 8
        client.get_option_chain.assert_called_once_with(
            "XYZ", TODAY + timedelta(days=1), TODAY + timedelta(days=60), "call"
        )

    def test_far_leg_closest_to_target(self):
        expirations = [TODAY + timedelta(days=d) for d in (3, 10, 28, 45)]
        chain = OptionChainIndex("XYZ", [make_contract(e, 100.0) for e in expirations])

        selection = CalendarSpreadSelector().select_spread("XYZ", 100.0, chain, TODAY)

        assert selection.near_expiration == expirations[0]
        assert selection.far_expiration == expirations[2]

    def test_far_leg_tie_resolves_to_earlier_date(self):
        expirations = [TODAY + timedelta(days=d) for d in (3, 28, 32)]
        chain = OptionChainIndex("XYZ", [make_contract(e, 100.0) for e in expirations])

        selection = CalendarSpreadSelector().select_spread("XYZ", 100.0, chain, TODAY)

        assert selection.far_expiration == expirations[1]

    def test_single_expiration_raises(self):
        chain = OptionChainIndex("XYZ", [make_contract(TODAY + timedelta(days=5), 100.0)])

        with pytest.raises(NoExpirationsFound):
            CalendarSpreadSelector().select_spread("XYZ", 100.0, chain, TODAY)

    def test_expirations_outside_window_ignored(self):
        chain = OptionChainIndex(
            "XYZ",
            [
                make_contract(TODAY, 100.0),
                make_contract(TODAY + timedelta(days=5), 100.0),
                make_contract(TODAY + timedelta(days=90), 100.0),
            ],
        )

        with pytest.raises(NoExpirationsFound):
            CalendarSpreadSelector().select_spread("XYZ", 100.0, chain, TODAY)

    def test_no_common_strike_raises(self):
        chain = OptionChainIndex(
            "XYZ",
            [
                make_contract(TODAY + timedelta(days=5), 100.0),
                make_contract(TODAY + timedelta(days=30), 105.0),
            ],
        )

        with pytest.raises(NoCommonStrike):
            CalendarSpreadSelector().select_spread("XYZ", 100.0, chain, TODAY)

    def test_debit_and_credit_clamped_at_zero(self):
        quotes = {
            "NEAR": OptionQuote("NEAR", bid=3.00, ask=3.10),
            "FAR": OptionQuote("FAR", bid=2.00, ask=2.50),
        }

        assert CalendarSpreadSelector.price_debit("NEAR", "FAR", quotes) == 0.0
        assert CalendarSpreadSelector.price_credit("NEAR", "FAR", quotes) == pytest.approx(0.50)

    def test_missing_quote_raises(self):
        with pytest.raises(QuoteUnavailableError):
            CalendarSpreadSelector.price_debit("NEAR", "FAR", {})

    def test_zero_debit_aborts_entry(self, xyz_contracts):
        client = Mock()
        client.get_option_chain.return_value = xyz_contracts
        client.get_option_quotes.return_value = {
            c.symbol: OptionQuote(c.symbol, 5.0, 5.0) for c in xyz_contracts
        }

        with pytest.raises(ZeroPriceError):
            CalendarSpreadSelector(client).price_entry("XYZ", 100.0, 1000.0, today=TODAY)

    def test_size_order(self):
        assert CalendarSpreadSelector.size_order(1.20, 1000.0) == 8
        assert CalendarSpreadSelector.size_order(1.20, 100.0) == 0

    def test_size_order_rejects_zero_debit(self):
        with pytest.raises(ZeroPriceError):
            CalendarSpreadSelector.size_order(0.0, 1000.0)
