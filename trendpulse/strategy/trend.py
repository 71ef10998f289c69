"""Trend detection — dual-EMA directional bias on the trend timeframe."""

from dataclasses import dataclass
from typing import Literal

from trendpulse.strategy.indicators import calculate_ema
from trendpulse.strategy.models import CandleData


@dataclass(frozen=True)
class TrendState:
    """Snapshot of the current trend direction and EMA values."""

    direction: Literal["bullish", "bearish"]
    ema_fast_value: float
    ema_slow_value: float

    @property
    def is_up_trend(self) -> bool:
        return self.direction == "bullish"

    @property
    def label(self) -> str:
        if self.is_up_trend:
            return "uptrend (EMA fast > EMA slow)"
        return "downtrend (EMA fast <= EMA slow)"


def detect_trend(
    candles: list[CandleData],
    ema_fast: int = 15,
    ema_slow: int = 60,
) -> TrendState:
    """Classify trend direction from the last bar's EMA pair.

    Bullish when EMA(fast) is strictly above EMA(slow) on the newest bar,
    bearish otherwise. The caller is responsible for the minimum-history
    check; an empty series is reported as bearish with zero values.
    """
    if not candles:
        return TrendState(direction="bearish", ema_fast_value=0.0, ema_slow_value=0.0)

    closes = [c.close for c in candles]
    ema_f = calculate_ema(closes, ema_fast)[-1]
    ema_s = calculate_ema(closes, ema_slow)[-1]

    return TrendState(
        direction="bullish" if ema_f > ema_s else "bearish",
        ema_fast_value=ema_f,
        ema_slow_value=ema_s,
    )
