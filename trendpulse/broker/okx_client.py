"""OKX v5 REST API async client.

Handles all communication with the exchange: market data, account and
position queries, leverage / position-mode setup, order placement,
position closing and algo (TP/SL) order management.

Private calls are signed per request (see ``trendpulse.broker.signing``)
and are never retried. Public market-data reads retry transient failures.
"""

import asyncio
import json
import logging
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from trendpulse.broker.models import (
    AccountBalance,
    AccountSnapshot,
    AlgoOrder,
    ApiResponse,
    Candle,
    MarketSnapshot,
    Position,
    Ticker,
)
from trendpulse.broker.signing import build_headers
from trendpulse.config import Config
from trendpulse.errors import ExchangeRejectedError, NetworkFailureError

logger = logging.getLogger("trendpulse.broker")

# Retry settings (public market data only)
_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 1.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}

LONG_SHORT_MODE = "long_short_mode"


def _to_float(value: Any, default: float = 0.0) -> float:
    """Parse an exchange numeric string; empty / missing → *default*."""
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _optional_price(value: Any) -> Optional[float]:
    price = _to_float(value)
    return price if price > 0 else None


def _serialize(body: Any) -> str:
    """Compact JSON, byte-identical to what is signed and sent."""
    return json.dumps(body, separators=(",", ":"))


class OkxClient:
    """Async client wrapping the OKX v5 REST API for one instrument."""

    def __init__(self, config: Config) -> None:
        self._config = config
        self._base_url = config.okx_base_url
        self._instrument = config.instrument_id
        self._timeout = config.request_timeout

    @property
    def instrument(self) -> str:
        return self._instrument

    # ── Transport ────────────────────────────────────────────────────────

    async def _request_with_retry(self, path: str) -> httpx.Response:
        """GET a public endpoint with exponential-backoff retry.

        Retries on transient server errors (502, 503, 504), rate limits
        (429) and transport errors.  Other responses are returned as-is.
        """
        url = self._base_url + path
        last_exc: Optional[Exception] = None

        for attempt in range(_MAX_RETRIES):
            try:
                async with httpx.AsyncClient() as client:
                    resp = await client.request(
                        "GET", url, headers=None, content=None, timeout=self._timeout,
                    )

                if resp.status_code in _RETRYABLE_STATUS_CODES:
                    delay = _RETRY_BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        "OKX GET %s returned %d — retry %d/%d in %.1fs",
                        path, resp.status_code, attempt + 1, _MAX_RETRIES, delay,
                    )
                    last_exc = NetworkFailureError(
                        f"GET {path} returned HTTP {resp.status_code}"
                    )
                    await asyncio.sleep(delay)
                    continue
                return resp

            except httpx.TransportError as exc:
                delay = _RETRY_BASE_DELAY * (2 ** attempt)
                logger.warning(
                    "OKX GET %s transport error (%s) — retry %d/%d in %.1fs",
                    path, exc, attempt + 1, _MAX_RETRIES, delay,
                )
                last_exc = NetworkFailureError(f"GET {path} failed: {exc}")
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]

    async def _public_get(self, path: str) -> ApiResponse:
        resp = await self._request_with_retry(path)
        return self._parse_envelope(resp, "GET", path)

    async def _request(
        self,
        method: str,
        path: str,
        body: Any = None,
    ) -> ApiResponse:
        """Send one signed request and return its success envelope.

        Raises:
            ExchangeRejectedError: Envelope code is not ``"0"``.
            NetworkFailureError: Transport failure, timeout, or a non-JSON /
                non-2xx response.
        """
        payload = _serialize(body) if body is not None else ""
        headers = build_headers(
            api_key=self._config.okx_api_key,
            secret_key=self._config.okx_secret_key,
            passphrase=self._config.okx_passphrase,
            method=method,
            request_path=path,
            body=payload,
            simulated_flag=self._config.simulated_flag,
        )
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.request(
                    method,
                    self._base_url + path,
                    headers=headers,
                    content=payload or None,
                    timeout=self._timeout,
                )
        except httpx.HTTPError as exc:
            raise NetworkFailureError(f"{method} {path} failed: {exc}") from exc

        return self._parse_envelope(resp, method, path)

    @staticmethod
    def _parse_envelope(resp: httpx.Response, method: str, path: str) -> ApiResponse:
        try:
            raw = resp.json()
        except ValueError:
            raw = None

        if not isinstance(raw, dict) or "code" not in raw:
            raise NetworkFailureError(
                f"{method} {path} returned HTTP {resp.status_code} without an envelope"
            )

        data = raw.get("data") or []
        envelope = ApiResponse(code=str(raw["code"]), msg=raw.get("msg", ""), data=data)
        if not envelope.ok:
            msg = envelope.msg
            if not msg and data and isinstance(data[0], dict):
                msg = data[0].get("sMsg", "")
            raise ExchangeRejectedError(envelope.code, msg, path)
        return envelope

    # ── Market data ──────────────────────────────────────────────────────

    async def fetch_ticker(self) -> Ticker:
        """Fetch the latest ticker for the tracked instrument."""
        path = f"/api/v5/market/ticker?{urlencode({'instId': self._instrument})}"
        resp = await self._public_get(path)
        if not resp.data:
            raise NetworkFailureError(f"GET {path} returned no ticker data")
        t = resp.data[0]
        return Ticker(
            instrument=t.get("instId", self._instrument),
            last=_to_float(t.get("last")),
            bid=_to_float(t.get("bidPx")),
            ask=_to_float(t.get("askPx")),
            open_24h=_to_float(t.get("open24h")),
            high_24h=_to_float(t.get("high24h")),
            low_24h=_to_float(t.get("low24h")),
            time=str(t.get("ts", "")),
        )

    async def fetch_candles(self, bar: str, limit: int = 300) -> list[Candle]:
        """Fetch candlestick data.

        Args:
            bar: e.g. ``"1H"``, ``"3m"``
            limit: number of candles to request (max 300)

        Returns:
            List of ``Candle`` objects ordered oldest-first (the exchange
            sends newest-first).
        """
        query = urlencode({"instId": self._instrument, "bar": bar, "limit": limit})
        resp = await self._public_get(f"/api/v5/market/candles?{query}")

        candles: list[Candle] = []
        for row in resp.data:
            candles.append(
                Candle(
                    time=str(row[0]),
                    open=float(row[1]),
                    high=float(row[2]),
                    low=float(row[3]),
                    close=float(row[4]),
                    volume=_to_float(row[5]),
                )
            )
        candles.reverse()
        return candles

    async def _fetch_public_number(self, path: str, key: str) -> float:
        try:
            resp = await self._public_get(path)
        except (ExchangeRejectedError, NetworkFailureError) as exc:
            logger.warning("Could not fetch %s: %s", key, exc)
            return 0.0
        if not resp.data:
            return 0.0
        return _to_float(resp.data[0].get(key))

    async def fetch_market(self) -> MarketSnapshot:
        """Fetch ticker, both candle series, funding rate and open interest."""
        inst = urlencode({"instId": self._instrument})
        ticker, trend, entry, funding, oi = await asyncio.gather(
            self.fetch_ticker(),
            self.fetch_candles(self._config.trend_bar, self._config.candle_limit),
            self.fetch_candles(self._config.entry_bar, self._config.candle_limit),
            self._fetch_public_number(f"/api/v5/public/funding-rate?{inst}", "fundingRate"),
            self._fetch_public_number(f"/api/v5/public/open-interest?{inst}", "oi"),
        )
        return MarketSnapshot(
            ticker=ticker,
            trend_candles=trend,
            entry_candles=entry,
            funding_rate=funding,
            open_interest=oi,
        )

    # ── Account ──────────────────────────────────────────────────────────

    async def get_balance(self, currency: str = "USDT") -> AccountBalance:
        """Query total and available equity for *currency*."""
        resp = await self._request("GET", f"/api/v5/account/balance?ccy={currency}")
        acct = resp.data[0] if resp.data else {}
        details = acct.get("details") or []
        detail = next((d for d in details if d.get("ccy") == currency), None)
        if detail is None and details:
            detail = details[0]
        detail = detail or {}
        return AccountBalance(
            total_equity=_to_float(detail.get("eq")),
            available_equity=_to_float(detail.get("availEq")),
            updated_at=str(acct.get("uTime", "")),
        )

    async def get_positions(self) -> list[dict]:
        """Return the raw position records for the tracked instrument."""
        path = f"/api/v5/account/positions?{urlencode({'instId': self._instrument})}"
        resp = await self._request("GET", path)
        return list(resp.data)

    async def get_pending_algo_orders(self) -> list[AlgoOrder]:
        """Return pending conditional / OCO algo orders for the instrument."""
        path = (
            f"/api/v5/trade/orders-algo-pending?instId={self._instrument}"
            f"&ordType=conditional,oco"
        )
        resp = await self._request("GET", path)
        return [
            AlgoOrder(
                algo_id=str(o.get("algoId", "")),
                instrument=o.get("instId", ""),
                position_side=o.get("posSide", ""),
                order_type=o.get("ordType", ""),
                stop_loss_price=_optional_price(o.get("slTriggerPx")),
                take_profit_price=_optional_price(o.get("tpTriggerPx")),
            )
            for o in resp.data
        ]

    async def fetch_account(self) -> AccountSnapshot:
        """Fetch balance and positions, enriched with active SL/TP triggers.

        The algo-order lookup is best-effort: on failure positions are
        returned without stop / take-profit prices.
        """
        balance, raw_positions = await asyncio.gather(
            self.get_balance(),
            self.get_positions(),
        )

        algo_orders: list[AlgoOrder] = []
        if raw_positions:
            try:
                algo_orders = await self.get_pending_algo_orders()
            except (ExchangeRejectedError, NetworkFailureError) as exc:
                logger.warning("Failed to fetch algo orders: %s", exc)

        positions = [parse_position(p, algo_orders) for p in raw_positions]
        return AccountSnapshot(balance=balance, positions=positions)

    # ── Account setup ────────────────────────────────────────────────────

    async def get_position_mode(self) -> str:
        """Return the account's position mode (e.g. ``"long_short_mode"``)."""
        resp = await self._request("GET", "/api/v5/account/config")
        if not resp.data:
            return ""
        return resp.data[0].get("posMode", "")

    async def set_position_mode(self, mode: str = LONG_SHORT_MODE) -> ApiResponse:
        return await self._request(
            "POST", "/api/v5/account/set-position-mode", {"posMode": mode},
        )

    async def set_leverage(self, leverage: str, position_side: str) -> ApiResponse:
        """Set leverage for one side of the instrument."""
        body = {
            "instId": self._instrument,
            "lever": leverage,
            "mgnMode": self._config.margin_mode,
            "posSide": position_side,
        }
        return await self._request("POST", "/api/v5/account/set-leverage", body)

    # ── Orders ───────────────────────────────────────────────────────────

    async def place_market_order(
        self,
        side: str,
        position_side: str,
        size: str,
        stop_loss: Optional[str] = None,
    ) -> ApiResponse:
        """Place a market order, optionally with an attached market stop.

        Args:
            side: ``"buy"`` or ``"sell"``.
            position_side: ``"long"`` or ``"short"``.
            size: Contract count, already quantized.
            stop_loss: Stop trigger price; the stop executes at market.
        """
        body: dict[str, Any] = {
            "instId": self._instrument,
            "tdMode": self._config.margin_mode,
            "side": side,
            "posSide": position_side,
            "ordType": "market",
            "sz": size,
        }
        if stop_loss:
            body["attachAlgoOrds"] = [{"slTriggerPx": stop_loss, "slOrdPx": "-1"}]
        return await self._request("POST", "/api/v5/trade/order", body)

    async def close_position(self, position_side: str) -> ApiResponse:
        """Close the whole position on one side at market."""
        body = {
            "instId": self._instrument,
            "posSide": position_side,
            "mgnMode": self._config.margin_mode,
        }
        return await self._request("POST", "/api/v5/trade/close-position", body)

    async def cancel_algo_orders(self, algo_ids: list[str]) -> ApiResponse:
        body = [{"algoId": algo_id, "instId": self._instrument} for algo_id in algo_ids]
        return await self._request("POST", "/api/v5/trade/cancel-algos", body)

    async def place_algo_order(
        self,
        position_side: str,
        size: str,
        stop_loss: Optional[str] = None,
        take_profit: Optional[str] = None,
    ) -> ApiResponse:
        """Place a reduce-only conditional order with market-priced triggers."""
        body: dict[str, Any] = {
            "instId": self._instrument,
            "posSide": position_side,
            "tdMode": self._config.margin_mode,
            "side": "sell" if position_side == "long" else "buy",
            "ordType": "conditional",
            "sz": size,
            "reduceOnly": True,
        }
        if stop_loss:
            body["slTriggerPx"] = stop_loss
            body["slOrdPx"] = "-1"
        if take_profit:
            body["tpTriggerPx"] = take_profit
            body["tpOrdPx"] = "-1"
        return await self._request("POST", "/api/v5/trade/order-algo", body)

    async def add_margin(self, position_side: str, amount: str, kind: str = "add") -> ApiResponse:
        """Add (or with ``kind="reduce"`` remove) isolated margin."""
        body = {
            "instId": self._instrument,
            "posSide": position_side,
            "type": kind,
            "amt": amount,
        }
        return await self._request("POST", "/api/v5/account/position/margin-balance", body)


def parse_position(raw: dict, algo_orders: list[AlgoOrder]) -> Position:
    """Build a ``Position`` from a raw record and the pending algo orders.

    A ``net`` position side is resolved to long / short by the sign of its
    size.  Stop / take-profit triggers come from the first algo order on the
    same instrument and position side carrying a positive trigger price.
    """
    raw_side = raw.get("posSide", "")
    size = _to_float(raw.get("pos"))
    if raw_side in ("long", "short"):
        side = raw_side
    else:
        side = "long" if size >= 0 else "short"

    instrument = raw.get("instId", "")
    matching = [
        o for o in algo_orders
        if o.instrument == instrument and o.position_side == raw_side
    ]
    sl = next((o.stop_loss_price for o in matching if o.stop_loss_price), None)
    tp = next((o.take_profit_price for o in matching if o.take_profit_price), None)

    return Position(
        instrument=instrument,
        side=side,
        size=abs(size),
        average_price=_to_float(raw.get("avgPx")),
        unrealized_pnl=_to_float(raw.get("upl")),
        unrealized_pnl_ratio=_to_float(raw.get("uplRatio")),
        margin_mode=raw.get("mgnMode", ""),
        liquidation_price=_optional_price(raw.get("liqPx")),
        open_time=str(raw.get("cTime", "")),
        stop_loss_price=sl,
        take_profit_price=tp,
    )
