"""Tests for the risk module: position sizer and trailing stop."""

import pytest

from trendpulse.risk.position_sizer import calculate_contracts
from trendpulse.risk.trailing_stop import (
    StopProposal,
    calculate_stop_update,
    estimate_mark_price,
)
from trendpulse.strategy.models import CandleData


def _bar(low: float, high: float) -> CandleData:
    mid = (low + high) / 2
    return CandleData(time="0", open=mid, high=high, low=low, close=mid, volume=1.0)


def _lows(*lows: float) -> list[CandleData]:
    return [_bar(low, low + 1.0) for low in lows]


def _highs(*highs: float) -> list[CandleData]:
    return [_bar(high - 1.0, high) for high in highs]


# ── Position Sizer ───────────────────────────────────────────────────────


class TestPositionSizer:
    def test_basic_calculation(self):
        """1000 × 5 % = 50 risk; 50 / 10 distance = 5 ETH = 50 contracts."""
        assert calculate_contracts(1000.0, 2000.0, 1990.0) == 50

    def test_short_side_distance(self):
        assert calculate_contracts(1000.0, 2000.0, 2010.0) == 50

    def test_rounds_down(self):
        """50 / 12 = 4.166 ETH = 41.66 contracts → 41."""
        assert calculate_contracts(1000.0, 2000.0, 1988.0) == 41

    def test_zero_stop_distance_sizes_one(self):
        assert calculate_contracts(1000.0, 2000.0, 2000.0) == 1

    def test_minimum_one_contract(self):
        """Tiny risk budget still trades the minimum when the cap allows it."""
        assert calculate_contracts(10.0, 2000.0, 1000.0) == 1

    def test_notional_cap(self):
        """50 contracts × 0.1 × 2000 = 10 000 > 100 × 20 → capped to 10."""
        assert calculate_contracts(100.0, 2000.0, 1999.0) == 10

    def test_cap_can_reach_zero(self):
        assert calculate_contracts(5.0, 2000.0, 1990.0) == 0

    def test_zero_equity(self):
        assert calculate_contracts(0.0, 2000.0, 1990.0) == 0

    def test_custom_contract_value(self):
        assert calculate_contracts(1000.0, 2000.0, 1990.0, contract_value=1.0) == 5

    def test_non_positive_contract_value_raises(self):
        with pytest.raises(ValueError, match="contract_value"):
            calculate_contracts(1000.0, 2000.0, 1990.0, contract_value=0.0)


# ── Mark price estimate ──────────────────────────────────────────────────


class TestEstimateMarkPrice:
    def test_long(self):
        # 10 contracts × 0.1 = 1 unit; +0.6 PnL → +0.6 price
        assert estimate_mark_price("long", 100.0, 10.0, 0.6, 0.1) == pytest.approx(100.6)

    def test_short_profit_means_lower_price(self):
        assert estimate_mark_price("short", 100.0, 10.0, 0.6, 0.1) == pytest.approx(99.4)

    def test_zero_size_returns_entry(self):
        assert estimate_mark_price("long", 100.0, 0.0, 5.0, 0.1) == 100.0


# ── Trailing stop ────────────────────────────────────────────────────────


class TestBreakeven:
    def test_long_moves_to_entry(self):
        result = calculate_stop_update("long", 100.0, 100.6, 90.0, _lows(98.0))
        assert isinstance(result, StopProposal)
        assert result.stop_loss == 100.0
        assert "Breakeven" in result.reason

    def test_long_without_stop(self):
        result = calculate_stop_update("long", 100.0, 100.6, None, _lows(98.0))
        assert result.stop_loss == 100.0

    def test_short_moves_to_entry(self):
        result = calculate_stop_update("short", 100.0, 99.4, 110.0, _highs(102.0))
        assert result.stop_loss == 100.0

    def test_below_trigger_no_change(self):
        """Mark +0.4 % and the trail would sit below entry."""
        assert calculate_stop_update("long", 100.0, 100.4, 90.0, _lows(98.0)) is None

    def test_breakeven_takes_precedence_over_trail(self):
        result = calculate_stop_update("long", 100.0, 103.0, 90.0, _lows(102.0) * 5)
        assert result.stop_loss == 100.0


class TestBreakevenPrecision:
    """Entries with more decimals than the exchange price precision."""

    def test_breakeven_rounded_to_price_precision(self):
        result = calculate_stop_update("long", 3250.123, 3320.0, 3200.0, _lows(3300.0))
        assert result.stop_loss == pytest.approx(3250.12)
        assert "Breakeven" in result.reason

    def test_long_at_breakeven_goes_on_to_trail(self):
        result = calculate_stop_update("long", 3250.123, 3320.0, 3250.12, _lows(3300.0) * 5)
        # 3300 × 0.9995 = 3298.35
        assert result is not None
        assert result.stop_loss == pytest.approx(3298.35)
        assert "Trailing" in result.reason

    def test_short_at_breakeven_goes_on_to_trail(self):
        result = calculate_stop_update("short", 3250.127, 3180.0, 3250.13, _highs(3200.0) * 5)
        # 3200 × 1.0005 = 3201.6
        assert result is not None
        assert result.stop_loss == pytest.approx(3201.6)


class TestTrailing:
    def test_long_trails_recent_low(self):
        candles = _lows(102.5, 102.2, 102.0, 102.8, 103.0)
        result = calculate_stop_update("long", 100.0, 103.0, 100.0, candles)
        # 102 × 0.9995 = 101.949 → 101.95
        assert result.stop_loss == pytest.approx(101.95)
        assert "low" in result.reason

    def test_short_trails_recent_high(self):
        candles = _highs(97.5, 97.8, 98.0, 97.2, 97.0)
        result = calculate_stop_update("short", 100.0, 97.0, 100.0, candles)
        # 98 × 1.0005 = 98.049 → 98.05
        assert result.stop_loss == pytest.approx(98.05)
        assert "high" in result.reason

    def test_only_last_five_bars_used(self):
        candles = _lows(50.0, 102.5, 102.2, 102.0, 102.8, 103.0)
        result = calculate_stop_update("long", 100.0, 103.0, 100.0, candles)
        assert result.stop_loss == pytest.approx(101.95)

    def test_never_loosens_stop(self):
        candles = _lows(102.0)
        assert calculate_stop_update("long", 100.0, 103.0, 102.0, candles) is None

    def test_small_move_suppressed(self):
        """101.93 → 101.95 is within 0.05 % of entry."""
        candles = _lows(102.0)
        assert calculate_stop_update("long", 100.0, 103.0, 101.93, candles) is None

    def test_trail_must_be_above_entry(self):
        """Mark 100.1 with a 98 low: trail 97.95 sits below entry."""
        candles = _lows(98.0)
        assert calculate_stop_update("long", 100.0, 100.1, 97.0, candles) is None

    def test_trail_must_be_below_mark(self):
        candles = _lows(104.0)
        assert calculate_stop_update("long", 100.0, 103.0, 100.0, candles) is None

    def test_no_candles(self):
        assert calculate_stop_update("long", 100.0, 100.2, 99.0, []) is None

    def test_unknown_side(self):
        assert calculate_stop_update("net", 100.0, 103.0, 90.0, _lows(102.0)) is None
