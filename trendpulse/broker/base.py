"""Exchange protocol and the live / simulated client factory.

The decision engine and executor only see ``ExchangeProtocol``; whether
calls reach the network is decided here, from configuration.
"""

from __future__ import annotations

from typing import Optional, Protocol, Union, runtime_checkable

from trendpulse.broker.models import (
    AccountSnapshot,
    AlgoOrder,
    ApiResponse,
    MarketSnapshot,
)
from trendpulse.broker.okx_client import OkxClient
from trendpulse.broker.simulated import SimulatedClient
from trendpulse.config import Config


@runtime_checkable
class ExchangeProtocol(Protocol):
    """Data-provider and trading surface shared by both clients."""

    async def fetch_market(self) -> MarketSnapshot: ...

    async def fetch_account(self) -> AccountSnapshot: ...

    async def get_pending_algo_orders(self) -> list[AlgoOrder]: ...

    async def get_position_mode(self) -> str: ...

    async def set_position_mode(self, mode: str = ...) -> ApiResponse: ...

    async def set_leverage(self, leverage: str, position_side: str) -> ApiResponse: ...

    async def place_market_order(
        self,
        side: str,
        position_side: str,
        size: str,
        stop_loss: Optional[str] = None,
    ) -> ApiResponse: ...

    async def close_position(self, position_side: str) -> ApiResponse: ...

    async def cancel_algo_orders(self, algo_ids: list[str]) -> ApiResponse: ...

    async def place_algo_order(
        self,
        position_side: str,
        size: str,
        stop_loss: Optional[str] = None,
        take_profit: Optional[str] = None,
    ) -> ApiResponse: ...


def build_client(config: Config, seed: Optional[int] = None) -> Union[OkxClient, SimulatedClient]:
    """Return the simulated client when ``config.simulation`` is set."""
    if config.simulation:
        return SimulatedClient(config, seed=seed)
    return OkxClient(config)
