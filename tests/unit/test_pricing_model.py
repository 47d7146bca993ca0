"""Tests for em_pricing.domain.model — linear price impact."""

import pytest

from src.em_common.enums import EventMode, TradeDirection
from src.em_common.errors import ValidationError
from src.em_common.system_config import SystemConfig
from src.em_pricing.domain.model import compute_execution, volatility_multiplier_for


class TestBuy:
    def test_buy_100_at_half(self) -> None:
        q = compute_execution(0.5, TradeDirection.BUY, 100)
        assert q.impact == pytest.approx(0.01)
        assert q.execution_price == pytest.approx(0.51)
        assert q.shares == pytest.approx(196.0784, rel=1e-4)
        assert q.proceeds == 0.0

    def test_buy_price_capped_at_ceiling(self) -> None:
        q = compute_execution(0.95, TradeDirection.BUY, 10_000)
        assert q.execution_price == pytest.approx(0.99)
        assert q.shares == pytest.approx(10_000 / 0.99)

    def test_buy_from_out_of_band_price_is_clamped(self) -> None:
        q = compute_execution(0.001, TradeDirection.BUY, 1)
        assert q.execution_price == pytest.approx(0.01)

    def test_turbulence_doubles_impact(self) -> None:
        calm = compute_execution(0.5, TradeDirection.BUY, 100, 1.0)
        wild = compute_execution(0.5, TradeDirection.BUY, 100, 2.0)
        assert wild.impact == pytest.approx(2 * calm.impact)
        assert wild.execution_price == pytest.approx(0.52)


class TestSell:
    def test_sell_impact_scales_with_shares(self) -> None:
        q = compute_execution(0.51, TradeDirection.SELL, 196.08)
        assert q.impact == pytest.approx(0.019608)
        assert q.execution_price == pytest.approx(0.490392)
        assert q.shares == pytest.approx(196.08)
        assert q.proceeds == pytest.approx(196.08 * 0.490392)

    def test_sell_price_floored(self) -> None:
        q = compute_execution(0.05, TradeDirection.SELL, 10_000)
        assert q.execution_price == pytest.approx(0.01)
        assert q.proceeds == pytest.approx(100.0)

    def test_buy_then_sell_never_profits(self) -> None:
        buy = compute_execution(0.5, TradeDirection.BUY, 100)
        sell = compute_execution(buy.execution_price, TradeDirection.SELL, buy.shares)
        assert sell.proceeds <= 100


class TestBounds:
    @pytest.mark.parametrize("price", [0.0, 0.01, 0.3, 0.99, 1.5])
    @pytest.mark.parametrize("direction", [TradeDirection.BUY, TradeDirection.SELL])
    @pytest.mark.parametrize("amount", [0.01, 50, 1e6])
    def test_execution_price_always_in_band(self, price, direction, amount) -> None:
        q = compute_execution(price, direction, amount)
        assert 0.01 <= q.execution_price <= 0.99

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_amount_rejected(self, amount) -> None:
        with pytest.raises(ValidationError):
            compute_execution(0.5, TradeDirection.BUY, amount)

    def test_non_positive_multiplier_rejected(self) -> None:
        with pytest.raises(ValidationError):
            compute_execution(0.5, TradeDirection.BUY, 10, 0)


class TestVolatilityMultiplier:
    def test_turbulence(self) -> None:
        assert volatility_multiplier_for(SystemConfig(event_mode=EventMode.TURBULENCE)) == 2.0

    @pytest.mark.parametrize(
        "mode",
        [EventMode.NONE, EventMode.TAX_HOLIDAY, EventMode.AIRDROP_ARMED, EventMode.FOG],
    )
    def test_other_modes(self, mode) -> None:
        assert volatility_multiplier_for(SystemConfig(event_mode=mode)) == 1.0
