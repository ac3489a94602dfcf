"""Tests for the individual gatekeeper filters."""

from dataclasses import replace
from datetime import timedelta
from unittest.mock import patch

import pytest

from earnings_spread.filters.base import FilterResult, TickerData
from earnings_spread.filters.mandatory import (
    ExecutionSpreadFilter,
    IVRatioFilter,
    LiquidityFilter,
    TermStructureFilter,
)
from earnings_spread.filters.optional import EarningsStabilityFilter, VolatilityCrushFilter

from conftest import (
    FAR_EXPIRATION,
    NEAR_EXPIRATION,
    SCAN_DATE,
    build_market_client,
    daily_bars,
    default_contracts,
    option,
)


def ticker_data(client, earnings_client=None):
    return TickerData("XYZ", SCAN_DATE, client, earnings_client=earnings_client)


class TestTickerData:
    def test_data_fetched_once(self, market_client):
        data = ticker_data(market_client)

        assert data.price == data.price
        assert len(data.bars) == len(data.bars)
        data.chain(SCAN_DATE, SCAN_DATE + timedelta(days=5))
        data.chain(SCAN_DATE, SCAN_DATE + timedelta(days=5))

        market_client.get_latest_price.assert_called_once_with("XYZ")
        market_client.get_daily_bars.assert_called_once()
        assert market_client.get_option_chain.call_count == 1

    def test_earnings_history_excludes_future(self, market_client, earnings_client):
        earnings_client.get_historical_earnings_dates.return_value = [
            SCAN_DATE + timedelta(days=90),
            SCAN_DATE - timedelta(days=90),
        ]

        data = ticker_data(market_client, earnings_client)

        assert data.earnings_history == [SCAN_DATE - timedelta(days=90)]

    def test_atm_near(self, market_client):
        contract = ticker_data(market_client).atm_near(SCAN_DATE + timedelta(days=1), 2)

        assert contract.expiration == NEAR_EXPIRATION
        assert contract.strike == 100.0


class TestLiquidityFilter:
    def test_passes(self, market_client):
        assert LiquidityFilter()(ticker_data(market_client)).passed

    def test_low_volume(self):
        client = build_market_client(bars=daily_bars(volume=1_000_000))

        result = LiquidityFilter()(ticker_data(client))

        assert result.reason == "low_volume"
        client.get_option_chain.assert_not_called()

    @pytest.mark.parametrize("price", [25.0, 450.0])
    def test_price_band(self, price):
        result = LiquidityFilter()(ticker_data(build_market_client(price=price)))

        assert result.reason == "price_out_of_range"

    def test_wide_spread(self):
        contracts = default_contracts()
        contracts[0] = option(NEAR_EXPIRATION, bid=1.80, ask=2.20, iv=0.9)

        result = LiquidityFilter()(ticker_data(build_market_client(contracts=contracts)))

        assert result.reason == "wide_spread"

    def test_thin_quotes(self):
        contracts = default_contracts()
        contracts[0] = replace(contracts[0], bid_size=20, ask_size=30)

        result = LiquidityFilter()(ticker_data(build_market_client(contracts=contracts)))

        assert result.reason == "thin_quotes"
        assert result.details[f"{contracts[0].symbol}.depth"] == 50

    def test_low_option_activity(self):
        result = LiquidityFilter()(ticker_data(build_market_client(contracts_traded=10)))

        assert result.reason == "low_option_activity"

    def test_no_options(self):
        result = LiquidityFilter()(ticker_data(build_market_client(contracts=[])))

        assert result == FilterResult.fail("liquidity", "no_options")


class TestVolatilityFilters:
    def test_iv_ratio_from_implied(self, market_client):
        result = IVRatioFilter()(ticker_data(market_client))

        assert result.passed
        assert result.details["ratio"] == pytest.approx(1.8)
        assert result.details["source"] == "implied"

    def test_iv_ratio_falls_back_to_historical(self):
        contracts = [
            option(NEAR_EXPIRATION, bid=2.00, ask=2.04),
            option(FAR_EXPIRATION, bid=3.00, ask=3.06),
        ]

        result = IVRatioFilter()(ticker_data(build_market_client(contracts=contracts)))

        # flat recent prices give zero realized volatility
        assert result.reason == "no_volatility_data"

    def test_low_iv_ratio(self):
        contracts = [
            option(NEAR_EXPIRATION, iv=0.55),
            option(FAR_EXPIRATION, bid=3.00, ask=3.06, iv=0.50),
        ]

        result = IVRatioFilter()(ticker_data(build_market_client(contracts=contracts)))

        assert result.reason == "low_iv_ratio"

    def test_term_structure_backwardation(self, market_client):
        result = TermStructureFilter()(ticker_data(market_client))

        assert result.passed
        assert result.details["slope"] == pytest.approx(0.40)

    def test_flat_term_structure(self):
        contracts = [
            option(NEAR_EXPIRATION, iv=0.52),
            option(FAR_EXPIRATION, bid=3.00, ask=3.06, iv=0.50),
        ]

        result = TermStructureFilter()(ticker_data(build_market_client(contracts=contracts)))

        assert result.reason == "flat_term_structure"


class TestExecutionSpreadFilter:
    def test_passes_with_positive_net_theta(self, market_client):
        result = ExecutionSpreadFilter()(ticker_data(market_client))

        assert result.passed
        assert result.details["debit"] == pytest.approx(1.06)
        assert result.details["net_theta"] == pytest.approx(0.07)

    def test_debit_too_wide(self):
        contracts = default_contracts()
        contracts[1] = option(FAR_EXPIRATION, bid=7.00, ask=7.10, iv=0.5, theta=-0.03)

        result = ExecutionSpreadFilter()(ticker_data(build_market_client(contracts=contracts)))

        assert result.reason == "debit_too_wide"

    def test_negative_theta(self):
        contracts = default_contracts()
        contracts[1] = option(FAR_EXPIRATION, bid=3.00, ask=3.06, iv=0.5, theta=-0.20)

        result = ExecutionSpreadFilter()(ticker_data(build_market_client(contracts=contracts)))

        assert result.reason == "negative_theta"

    def test_missing_long_leg(self):
        contracts = [option(NEAR_EXPIRATION, iv=0.9)]

        result = ExecutionSpreadFilter()(ticker_data(build_market_client(contracts=contracts)))

        assert result.reason == "no_long_leg"


class TestOptionalFilters:
    def test_earnings_stability(self, market_client, earnings_client):
        result = EarningsStabilityFilter()(ticker_data(market_client, earnings_client))

        assert result.passed
        assert result.details["stable_fraction"] == 1.0

    def test_move_at_threshold_is_unstable(self, market_client, earnings_client):
        with patch("earnings_spread.filters.optional.earnings_move", return_value=0.05):
            result = EarningsStabilityFilter()(ticker_data(market_client, earnings_client))

        assert result.reason == "unstable_earnings"
        assert result.details["stable_fraction"] == 0.0

    def test_stability_needs_history(self, market_client):
        result = EarningsStabilityFilter()(ticker_data(market_client))

        assert result.reason == "insufficient_history"

    def test_volatility_crush(self, market_client, earnings_client):
        result = VolatilityCrushFilter()(ticker_data(market_client, earnings_client))

        assert result.passed
        assert result.details["crush_fraction"] == 1.0

    def test_no_crush_when_post_earnings_choppy(self, earnings_client):
        bars = daily_bars()
        for event in earnings_client.get_historical_earnings_dates.return_value:
            for bar in bars:
                if event < bar.day <= event + timedelta(days=7):
                    bar.close = 100.0 if (bar.day - event).days % 2 == 0 else 106.0

        result = VolatilityCrushFilter()(ticker_data(build_market_client(bars=bars), earnings_client))

        assert result.reason == "no_crush_history"
