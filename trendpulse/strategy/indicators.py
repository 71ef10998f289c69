"""Technical indicators — EMA. Pure functions, no I/O."""

from typing import Sequence


def calculate_ema(values: Sequence[float], period: int) -> list[float]:
    """Calculate an Exponential Moving Average series.

    Uses the standard EMA formula:
        ``EMA_today = value × k + EMA_yesterday × (1 - k)``
    where ``k = 2 / (period + 1)``.

    The first EMA value is seeded with the first input value, so there is
    no warm-up gap: the output always has the same length as *values*.
    An empty input yields an empty output.
    """
    if not values:
        return []

    k = 2.0 / (period + 1)
    ema: list[float] = [float(values[0])]
    for value in values[1:]:
        prev = ema[-1]
        # Same recurrence, arranged so a flat series stays exactly flat.
        ema.append(prev + k * (value - prev))
    return ema
