"""Strategy data models — typed representations for strategy inputs and outputs."""

from dataclasses import dataclass
from typing import Literal

Action = Literal["buy", "sell", "close", "update_tpsl", "hold"]
CrossKind = Literal["golden", "dead"]


@dataclass(frozen=True)
class CandleData:
    """A single candlestick bar for strategy consumption."""

    time: str
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class CrossEvent:
    """A fast/slow moving-average crossover at one bar of the entry series."""

    index: int
    kind: CrossKind  # "golden": fast crossed above slow, "dead": below
    price: float
    time: str


@dataclass(frozen=True)
class StrategyResult:
    """Outcome of one strategy evaluation.

    ``stop_loss`` is ``0.0`` unless the action is an entry.
    """

    action: Action
    reason: str
    stop_loss: float = 0.0
    is_up_trend: bool = False
