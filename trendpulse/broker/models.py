"""Broker data models — typed representations of OKX v5 API objects."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Candle:
    """A single candlestick bar."""

    time: str  # epoch milliseconds, as sent by the exchange
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class Ticker:
    """Latest traded price and 24h statistics."""

    instrument: str
    last: float
    bid: float
    ask: float
    open_24h: float
    high_24h: float
    low_24h: float
    time: str


@dataclass(frozen=True)
class MarketSnapshot:
    """Everything the decision engine reads about the market in one cycle."""

    ticker: Optional[Ticker]
    trend_candles: list[Candle]
    entry_candles: list[Candle]
    funding_rate: float = 0.0
    open_interest: float = 0.0


@dataclass(frozen=True)
class AccountBalance:
    """Equity figures for the settlement currency."""

    total_equity: float
    available_equity: float
    updated_at: str


@dataclass(frozen=True)
class Position:
    """An open position on the tracked instrument."""

    instrument: str
    side: str  # "long" or "short"
    size: float  # contracts, always positive
    average_price: float
    unrealized_pnl: float
    unrealized_pnl_ratio: float
    margin_mode: str
    liquidation_price: Optional[float]
    open_time: str
    stop_loss_price: Optional[float] = None
    take_profit_price: Optional[float] = None


@dataclass(frozen=True)
class AlgoOrder:
    """A pending conditional / OCO order."""

    algo_id: str
    instrument: str
    position_side: str
    order_type: str
    stop_loss_price: Optional[float] = None
    take_profit_price: Optional[float] = None


@dataclass(frozen=True)
class AccountSnapshot:
    """Balance plus open positions for the tracked instrument."""

    balance: AccountBalance
    positions: list[Position] = field(default_factory=list)

    def position_for(self, instrument: str) -> Optional[Position]:
        """Return the first open position on *instrument*, if any."""
        for p in self.positions:
            if p.instrument == instrument and p.size > 0:
                return p
        return None


@dataclass(frozen=True)
class ApiResponse:
    """Response envelope ``{code, msg, data}``; ``code == "0"`` is success."""

    code: str
    msg: str
    data: list = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.code == "0"
