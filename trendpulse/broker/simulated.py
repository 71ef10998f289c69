"""Simulated exchange — mock market/account data and synthetic order acks.

Stands in for ``OkxClient`` when ``SIMULATION`` is enabled: no network
calls are made, every mutating call succeeds and is recorded in
``SimulatedClient.calls`` for inspection.
"""

import logging
import random
import time
from typing import Any, Optional

from trendpulse.broker.models import (
    AccountBalance,
    AccountSnapshot,
    AlgoOrder,
    ApiResponse,
    Candle,
    MarketSnapshot,
    Ticker,
)
from trendpulse.config import Config

logger = logging.getLogger("trendpulse.broker")

_BASE_PRICE = 3250.0
_CANDLE_COUNT = 300
_BAR_MS = {"1m": 60_000, "3m": 180_000, "5m": 300_000, "15m": 900_000,
           "1H": 3_600_000, "4H": 14_400_000, "1D": 86_400_000}


class SimulatedClient:
    """Drop-in replacement for ``OkxClient`` that never leaves the process.

    Args:
        config: Application configuration.
        seed: Seed for the random walk; ``None`` for a fresh walk each run.
        equity: Starting total / available equity.
    """

    def __init__(
        self,
        config: Config,
        seed: Optional[int] = None,
        equity: float = 1000.0,
    ) -> None:
        self._config = config
        self._instrument = config.instrument_id
        self._rng = random.Random(seed)
        self._equity = equity
        self._order_seq = 0
        self.calls: list[tuple[str, dict]] = []

    @property
    def instrument(self) -> str:
        return self._instrument

    # ── Market data ──────────────────────────────────────────────────────

    def _generate_candles(self, bar: str, now_ms: int, start: float) -> list[Candle]:
        """Random walk ending near *start*, oldest-first."""
        interval = _BAR_MS.get(bar, 60_000)
        candles: list[Candle] = []
        price = start
        for i in range(_CANDLE_COUNT):
            open_ = round(price, 2)
            close = round(open_ * (1 + (self._rng.random() - 0.5) * 0.005), 2)
            candles.append(
                Candle(
                    time=str(now_ms - i * interval),
                    open=open_,
                    high=round(max(open_, close) + 2, 2),
                    low=round(min(open_, close) - 2, 2),
                    close=close,
                    volume=round(self._rng.random() * 100, 2),
                )
            )
            price = open_ + (self._rng.random() - 0.5) * 10
        candles.reverse()
        return candles

    async def fetch_market(self) -> MarketSnapshot:
        now_ms = int(time.time() * 1000)
        current = _BASE_PRICE + 50 * (self._rng.random() - 0.5)
        trend = self._generate_candles(self._config.trend_bar, now_ms, current)
        entry = self._generate_candles(self._config.entry_bar, now_ms, current)
        last = entry[-1].close
        ticker = Ticker(
            instrument=self._instrument,
            last=last,
            bid=round(last - 0.01, 2),
            ask=round(last + 0.01, 2),
            open_24h=_BASE_PRICE,
            high_24h=max(c.high for c in entry),
            low_24h=min(c.low for c in entry),
            time=str(now_ms),
        )
        return MarketSnapshot(
            ticker=ticker,
            trend_candles=trend,
            entry_candles=entry,
            funding_rate=0.0001,
            open_interest=50000.0,
        )

    # ── Account ──────────────────────────────────────────────────────────

    async def fetch_account(self) -> AccountSnapshot:
        return AccountSnapshot(
            balance=AccountBalance(
                total_equity=self._equity,
                available_equity=self._equity,
                updated_at=str(int(time.time() * 1000)),
            ),
            positions=[],
        )

    async def get_pending_algo_orders(self) -> list[AlgoOrder]:
        return []

    async def get_position_mode(self) -> str:
        return "long_short_mode"

    # ── Mutations ────────────────────────────────────────────────────────

    def _ack(self, call: str, msg: str, **params: Any) -> ApiResponse:
        self._order_seq += 1
        self.calls.append((call, params))
        logger.info("SIMULATION: %s %s", call, params)
        return ApiResponse(code="0", msg=msg, data=[{"ordId": f"sim_{self._order_seq}"}])

    async def set_position_mode(self, mode: str = "long_short_mode") -> ApiResponse:
        return self._ack("set_position_mode", "simulated mode switch", mode=mode)

    async def set_leverage(self, leverage: str, position_side: str) -> ApiResponse:
        return self._ack(
            "set_leverage", "simulated leverage",
            leverage=leverage, position_side=position_side,
        )

    async def place_market_order(
        self,
        side: str,
        position_side: str,
        size: str,
        stop_loss: Optional[str] = None,
    ) -> ApiResponse:
        return self._ack(
            "place_market_order", "simulated order placed",
            side=side, position_side=position_side, size=size, stop_loss=stop_loss,
        )

    async def close_position(self, position_side: str) -> ApiResponse:
        return self._ack("close_position", "simulated close", position_side=position_side)

    async def cancel_algo_orders(self, algo_ids: list[str]) -> ApiResponse:
        return self._ack("cancel_algo_orders", "simulated cancel", algo_ids=list(algo_ids))

    async def place_algo_order(
        self,
        position_side: str,
        size: str,
        stop_loss: Optional[str] = None,
        take_profit: Optional[str] = None,
    ) -> ApiResponse:
        return self._ack(
            "place_algo_order", "simulated TP/SL update",
            position_side=position_side, size=size,
            stop_loss=stop_loss, take_profit=take_profit,
        )

    async def add_margin(self, position_side: str, amount: str, kind: str = "add") -> ApiResponse:
        return self._ack(
            "add_margin", "simulated margin change",
            position_side=position_side, amount=amount, kind=kind,
        )
