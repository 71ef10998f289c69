"""Trend-pullback entry signal — the decision core of each cycle.

Combines two timeframes:

1. **Trend** (long timeframe): EMA(15) vs EMA(60) on closes gives the
   directional bias.
2. **Entry** (short timeframe): the same EMA pair must show a pullback
   against the trend followed by a resumption in its direction, i.e. a
   dead→golden cross sequence for longs and golden→dead for shorts, with
   the resuming cross no more than two bars old.

An open position whose side contradicts the trend is closed before any
entry logic runs. Everything is recomputed from the current candles; no
state survives between cycles.
"""

from typing import Optional

from trendpulse.strategy.crossovers import detect_crosses
from trendpulse.strategy.indicators import calculate_ema
from trendpulse.strategy.models import CandleData, CrossEvent, StrategyResult
from trendpulse.strategy.trend import detect_trend

MIN_CANDLES = 60
EMA_FAST = 15
EMA_SLOW = 60
SCAN_WINDOW = 50
MAX_SIGNAL_AGE = 2  # bars between the last cross and the newest bar
STOP_BUFFER = 0.0005  # 0.05 % beyond the pullback extreme


def evaluate_signal(
    trend_candles: list[CandleData],
    entry_candles: list[CandleData],
    position_side: Optional[str] = None,
) -> StrategyResult:
    """Evaluate both timeframes and return one strategy action.

    Args:
        trend_candles: Long-timeframe candles, oldest-first.
        entry_candles: Short-timeframe candles, oldest-first.
        position_side: ``"long"`` / ``"short"`` for the tracked open
            position, ``None`` when flat.

    Returns:
        ``StrategyResult`` with action ``"close"``, ``"buy"``, ``"sell"``
        or ``"hold"``. Entries carry the stop-loss price.
    """
    if len(trend_candles) < MIN_CANDLES or len(entry_candles) < MIN_CANDLES:
        return StrategyResult(
            action="hold",
            reason=(
                f"Data accumulating: {len(trend_candles)} trend / "
                f"{len(entry_candles)} entry candles, need {MIN_CANDLES}"
            ),
        )

    trend = detect_trend(trend_candles, EMA_FAST, EMA_SLOW)
    is_up = trend.is_up_trend

    closes = [c.close for c in entry_candles]
    fast = calculate_ema(closes, EMA_FAST)
    slow = calculate_ema(closes, EMA_SLOW)
    crosses = detect_crosses(fast, slow, SCAN_WINDOW, candles=entry_candles)

    # Trend reversal exit takes priority over everything else
    if position_side == "short" and is_up:
        return StrategyResult(
            action="close",
            reason="Trend reversed to up, closing short position",
            is_up_trend=is_up,
        )
    if position_side == "long" and not is_up:
        return StrategyResult(
            action="close",
            reason="Trend reversed to down, closing long position",
            is_up_trend=is_up,
        )

    if position_side is None and len(crosses) >= 2:
        entry = _entry_from_crosses(
            crosses[-2], crosses[-1], entry_candles, is_up,
        )
        if entry is not None:
            return entry

    return StrategyResult(
        action="hold",
        reason=_monitor_reason(trend.label, crosses, len(entry_candles)),
        is_up_trend=is_up,
    )


def _entry_from_crosses(
    prev: CrossEvent,
    last: CrossEvent,
    candles: list[CandleData],
    is_up: bool,
) -> Optional[StrategyResult]:
    """Return an entry when the last two crosses form a fresh continuation."""
    candles_ago = len(candles) - 1 - last.index
    if candles_ago > MAX_SIGNAL_AGE:
        return None

    span = candles[prev.index : last.index + 1]

    if is_up and prev.kind == "dead" and last.kind == "golden":
        lowest = min(c.low for c in span)
        return StrategyResult(
            action="buy",
            stop_loss=lowest * (1 - STOP_BUFFER),
            reason=(
                f"Uptrend + pullback completed (dead -> golden cross). "
                f"Span low {lowest}"
            ),
            is_up_trend=True,
        )

    if not is_up and prev.kind == "golden" and last.kind == "dead":
        highest = max(c.high for c in span)
        return StrategyResult(
            action="sell",
            stop_loss=highest * (1 + STOP_BUFFER),
            reason=(
                f"Downtrend + rebound completed (golden -> dead cross). "
                f"Span high {highest}"
            ),
            is_up_trend=False,
        )

    return None


def _monitor_reason(trend_label: str, crosses: list[CrossEvent], n: int) -> str:
    if crosses:
        last = crosses[-1]
        recent = f"{last.kind} ({n - 1 - last.index} bars ago)"
    else:
        recent = "none"
    return f"Monitoring: {trend_label} | last entry cross: {recent}"
