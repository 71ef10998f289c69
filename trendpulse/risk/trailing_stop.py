"""Trailing stop — breakeven and trailing SL management for an open position.

Rules (mirrored for shorts):
  - Price beyond entry by more than 0.5 % of entry and the stop still worse
    than entry → move SL to breakeven (entry price).
  - Otherwise → trail SL just beyond the extreme of the last 5 entry bars,
    provided it tightens the stop and stays between entry and mark price.

A proposal is only made when it moves the stop by more than 0.05 % of entry.
"""

from dataclasses import dataclass
from typing import Optional

from trendpulse.strategy.models import CandleData

BREAKEVEN_TRIGGER = 0.005
TRAIL_LOOKBACK = 5
TRAIL_BUFFER = 0.0005
MIN_STOP_CHANGE = 0.0005


@dataclass(frozen=True)
class StopProposal:
    """A new stop-loss price for the open position."""

    stop_loss: float
    reason: str


def estimate_mark_price(
    side: str,
    entry_price: float,
    size: float,
    unrealized_pnl: float,
    contract_value: float,
) -> float:
    """Back out the mark price from unrealized PnL per underlying unit.

    Returns *entry_price* when the position has no size.
    """
    units = abs(size) * contract_value
    if units == 0:
        return entry_price
    move = unrealized_pnl / units
    if side == "short":
        return entry_price - move
    return entry_price + move


def calculate_stop_update(
    side: str,
    entry_price: float,
    mark_price: float,
    current_stop: Optional[float],
    recent_candles: list[CandleData],
    price_decimals: int = 2,
) -> Optional[StopProposal]:
    """Propose a breakeven or trailing stop for one position.

    Args:
        side: ``"long"`` or ``"short"``.
        entry_price: Average entry price.
        mark_price: Current (estimated) mark price.
        current_stop: Active stop trigger price, ``None`` if no stop is set.
        recent_candles: Entry-timeframe candles, oldest-first; only the last
            ``TRAIL_LOOKBACK`` are used.
        price_decimals: Rounding applied to the proposed price.

    Returns:
        ``StopProposal`` or ``None`` when the stop should stay put.
    """
    if entry_price <= 0 or side not in ("long", "short"):
        return None

    window = recent_candles[-TRAIL_LOOKBACK:]
    trigger = entry_price * BREAKEVEN_TRIGGER
    # Compared at exchange precision so an already-placed breakeven stop matches.
    breakeven = round(entry_price, price_decimals)
    new_sl: Optional[float] = None
    reason = ""

    if side == "long":
        stop = current_stop if current_stop is not None else float("-inf")
        if mark_price > entry_price + trigger and stop < breakeven:
            new_sl = breakeven
            reason = "Breakeven: stop moved to entry"
        elif window:
            recent_low = min(c.low for c in window)
            trail_sl = recent_low * (1 - TRAIL_BUFFER)
            if trail_sl > stop and entry_price < trail_sl < mark_price:
                new_sl = trail_sl
                reason = f"Trailing stop below last {len(window)} bar low"
    else:
        stop = current_stop if current_stop is not None else float("inf")
        if mark_price < entry_price - trigger and stop > breakeven:
            new_sl = breakeven
            reason = "Breakeven: stop moved to entry"
        elif window:
            recent_high = max(c.high for c in window)
            trail_sl = recent_high * (1 + TRAIL_BUFFER)
            if trail_sl < stop and mark_price < trail_sl < entry_price:
                new_sl = trail_sl
                reason = f"Trailing stop above last {len(window)} bar high"

    if new_sl is None:
        return None

    new_sl = round(new_sl, price_decimals)
    if current_stop is not None and abs(new_sl - current_stop) <= entry_price * MIN_STOP_CHANGE:
        return None
    return StopProposal(stop_loss=new_sl, reason=reason)
