"""Deterministic tests for the strategy module.

All tests use fixed candle data fixtures. Same input = same output, always.
"""

import pytest

from trendpulse.strategy.crossovers import detect_crosses
from trendpulse.strategy.indicators import calculate_ema
from trendpulse.strategy.models import CandleData
from trendpulse.strategy.signals import evaluate_signal
from trendpulse.strategy.trend import detect_trend


# ── Candle fixtures ──────────────────────────────────────────────────────

def _make_candle(i: int, close: float, spread: float = 1.0) -> CandleData:
    return CandleData(
        time=str(1_700_000_000_000 + i * 180_000),
        open=close,
        high=close + spread,
        low=close - spread,
        close=close,
        volume=10.0,
    )


def _series(closes: list[float]) -> list[CandleData]:
    return [_make_candle(i, c) for i, c in enumerate(closes)]


def _flat_then(tail: list[float], n: int = 100, base: float = 100.0) -> list[CandleData]:
    """*n* candles flat at *base*, ending with *tail* closes."""
    return _series([base] * (n - len(tail)) + tail)


def _uptrend(n: int = 100) -> list[CandleData]:
    return _series([100.0 + i for i in range(n)])


def _downtrend(n: int = 100) -> list[CandleData]:
    return _series([300.0 - i for i in range(n)])


# Flat EMAs, then a dip (dead cross) and a surge (golden cross) on the
# last two bars.
_PULLBACK_THEN_RESUME_UP = [99.0, 110.0]
# Flat EMAs, then a pop (golden cross) and a drop (dead cross).
_REBOUND_THEN_RESUME_DOWN = [101.0, 90.0]


# ── EMA ──────────────────────────────────────────────────────────────────


class TestEMA:
    @pytest.mark.parametrize("period", [1, 3, 15, 60])
    def test_constant_series_is_unchanged(self, period):
        values = [42.5] * 80
        assert calculate_ema(values, period) == values

    def test_empty_input(self):
        assert calculate_ema([], 15) == []

    def test_length_matches_input(self):
        values = [float(v) for v in range(1, 37)]
        assert len(calculate_ema(values, 60)) == len(values)

    def test_seeded_with_first_value(self):
        assert calculate_ema([7.0, 100.0], 15)[0] == 7.0

    def test_recurrence(self):
        """k = 2/(3+1) = 0.5 → [1, 1.5, 2.25]."""
        ema = calculate_ema([1.0, 2.0, 3.0], 3)
        assert ema == pytest.approx([1.0, 1.5, 2.25])


# ── Crossover scanner ────────────────────────────────────────────────────


class TestCrossovers:
    def test_no_cross(self):
        assert detect_crosses([2.0, 3.0, 4.0, 5.0], [1.0, 1.0, 1.0, 1.0]) == []

    def test_single_golden_cross(self):
        events = detect_crosses([1.0, 1.0, 3.0, 4.0], [2.0, 2.0, 2.0, 2.0])
        assert len(events) == 1
        assert events[0].kind == "golden"
        assert events[0].index == 2

    def test_single_dead_cross(self):
        events = detect_crosses([3.0, 3.0, 1.0], [2.0, 2.0, 2.0])
        assert len(events) == 1
        assert events[0].kind == "dead"
        assert events[0].index == 2

    def test_equal_then_above_is_golden(self):
        events = detect_crosses([2.0, 3.0], [2.0, 2.0])
        assert [e.kind for e in events] == ["golden"]

    def test_events_in_chronological_order(self):
        fast = [1.0, 3.0, 1.0, 3.0]
        slow = [2.0, 2.0, 2.0, 2.0]
        events = detect_crosses(fast, slow)
        assert [(e.index, e.kind) for e in events] == [
            (1, "golden"), (2, "dead"), (3, "golden"),
        ]

    def test_cross_outside_window_ignored(self):
        fast = [1.0, 3.0, 3.0, 3.0, 3.0]
        slow = [2.0] * 5
        assert detect_crosses(fast, slow, window=2) == []
        assert len(detect_crosses(fast, slow)) == 1

    def test_events_carry_candle_price_and_time(self):
        candles = _series([10.0, 11.0, 12.0])
        events = detect_crosses([1.0, 1.0, 3.0], [2.0, 2.0, 2.0], candles=candles)
        assert events[0].price == 12.0
        assert events[0].time == candles[2].time

    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError, match="length"):
            detect_crosses([1.0, 2.0], [1.0])


# ── Trend ────────────────────────────────────────────────────────────────


class TestTrend:
    def test_rising_series_is_bullish(self):
        trend = detect_trend(_uptrend())
        assert trend.direction == "bullish"
        assert trend.is_up_trend
        assert trend.ema_fast_value > trend.ema_slow_value

    def test_falling_series_is_bearish(self):
        assert detect_trend(_downtrend()).direction == "bearish"

    def test_flat_series_is_not_up(self):
        """EMA fast == EMA slow is not an uptrend."""
        assert not detect_trend(_flat_then([])).is_up_trend


# ── Entry signal ─────────────────────────────────────────────────────────


class TestEvaluateSignal:
    @pytest.mark.parametrize("n_trend,n_entry", [(59, 100), (100, 59), (10, 10), (0, 0)])
    def test_insufficient_data_holds(self, n_trend, n_entry):
        result = evaluate_signal(_uptrend(n_trend), _flat_then([], n=n_entry))
        assert result.action == "hold"
        assert "accumulating" in result.reason

    def test_insufficient_data_holds_even_with_position(self):
        result = evaluate_signal(_downtrend(59), _flat_then([]), position_side="long")
        assert result.action == "hold"

    def test_buy_on_pullback_in_uptrend(self):
        entry = _flat_then(_PULLBACK_THEN_RESUME_UP)
        result = evaluate_signal(_uptrend(), entry)

        assert result.action == "buy"
        assert result.is_up_trend
        # min(low[98], low[99]) = min(98, 109) = 98
        assert result.stop_loss == pytest.approx(98.0 * 0.9995)

    def test_sell_on_rebound_in_downtrend(self):
        entry = _flat_then(_REBOUND_THEN_RESUME_DOWN)
        result = evaluate_signal(_downtrend(), entry)

        assert result.action == "sell"
        assert not result.is_up_trend
        # max(high[98], high[99]) = max(102, 91) = 102
        assert result.stop_loss == pytest.approx(102.0 * 1.0005)

    def test_signal_two_bars_old_is_still_fresh(self):
        entry = _flat_then(_PULLBACK_THEN_RESUME_UP + [110.0, 110.0])
        result = evaluate_signal(_uptrend(), entry)
        assert result.action == "buy"
        assert result.stop_loss == pytest.approx(98.0 * 0.9995)

    def test_stale_signal_holds(self):
        entry = _flat_then(_PULLBACK_THEN_RESUME_UP + [110.0] * 4)
        result = evaluate_signal(_uptrend(), entry)
        assert result.action == "hold"
        assert "golden (4 bars ago)" in result.reason

    def test_wrong_pattern_for_trend_holds(self):
        """Golden → dead in an uptrend is not a long entry."""
        entry = _flat_then(_REBOUND_THEN_RESUME_DOWN)
        assert evaluate_signal(_uptrend(), entry).action == "hold"

    def test_single_cross_holds(self):
        entry = _flat_then([110.0])
        assert evaluate_signal(_uptrend(), entry).action == "hold"

    def test_no_entry_while_position_open(self):
        entry = _flat_then(_PULLBACK_THEN_RESUME_UP)
        result = evaluate_signal(_uptrend(), entry, position_side="long")
        assert result.action == "hold"

    def test_long_closed_on_downtrend(self):
        entry = _flat_then(_PULLBACK_THEN_RESUME_UP)
        result = evaluate_signal(_downtrend(), entry, position_side="long")
        assert result.action == "close"
        assert result.stop_loss == 0.0

    def test_short_closed_on_uptrend(self):
        result = evaluate_signal(_uptrend(), _flat_then([]), position_side="short")
        assert result.action == "close"

    def test_hold_reason_describes_trend(self):
        result = evaluate_signal(_uptrend(), _flat_then([]))
        assert result.action == "hold"
        assert "uptrend" in result.reason
        assert "none" in result.reason
