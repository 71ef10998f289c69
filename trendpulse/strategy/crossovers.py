"""Crossover scanner — golden/dead cross detection over a recent window."""

from typing import Optional, Sequence

from trendpulse.strategy.models import CandleData, CrossEvent

DEFAULT_SCAN_WINDOW = 50


def detect_crosses(
    fast: Sequence[float],
    slow: Sequence[float],
    window: int = DEFAULT_SCAN_WINDOW,
    candles: Optional[Sequence[CandleData]] = None,
) -> list[CrossEvent]:
    """Find fast/slow crossovers among the last *window* bars.

    Scans indices ``max(1, n - window)`` through ``n - 1``:

    - **Golden** at *i*: ``fast[i-1] <= slow[i-1]`` and ``fast[i] > slow[i]``.
    - **Dead** at *i*: ``fast[i-1] >= slow[i-1]`` and ``fast[i] < slow[i]``.

    Args:
        fast: Fast moving-average series.
        slow: Slow moving-average series, same length as *fast*.
        window: Number of most recent bars to scan.
        candles: Source candles aligned with the series. When given, each
            event carries the bar's close and time; otherwise the fast
            average value and an empty time.

    Returns:
        Events in chronological (increasing index) order.

    Raises:
        ValueError: If the series lengths differ.
    """
    if len(fast) != len(slow):
        raise ValueError(
            f"fast and slow series differ in length: {len(fast)} != {len(slow)}"
        )

    events: list[CrossEvent] = []
    for i in range(max(1, len(fast) - window), len(fast)):
        if fast[i - 1] <= slow[i - 1] and fast[i] > slow[i]:
            kind = "golden"
        elif fast[i - 1] >= slow[i - 1] and fast[i] < slow[i]:
            kind = "dead"
        else:
            continue

        if candles is not None:
            price, time = candles[i].close, candles[i].time
        else:
            price, time = fast[i], ""
        events.append(CrossEvent(index=i, kind=kind, price=price, time=time))
    return events
