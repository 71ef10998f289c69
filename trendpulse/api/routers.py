"""Internal API routers — /api/status and /api/toggle endpoints.

No business logic. Exposes the shared state the engine updates each cycle.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter

from trendpulse.broker.models import AccountSnapshot, MarketSnapshot

logger = logging.getLogger("trendpulse")
router = APIRouter(prefix="/api")

_LOG_KINDS = {"INFO", "SUCCESS", "WARNING", "ERROR", "TRADE"}
_MAX_LOGS = 100

# ── Shared state (updated by the engine) ─────────────────────────────────

_engine = None  # Set via configure_routers()
_market_data: Optional[dict] = None
_account_data: Optional[dict] = None
_latest_decision: Optional[dict] = None
_logs: list[dict] = []


def configure_routers(engine=None) -> None:
    """Inject the running ``TradingEngine`` (or a duck-type for tests)."""
    global _engine  # noqa: PLW0603
    _engine = engine


def reset_state() -> None:
    """Clear all shared state."""
    global _market_data, _account_data, _latest_decision  # noqa: PLW0603
    _market_data = None
    _account_data = None
    _latest_decision = None
    _logs.clear()


def push_log(kind: str, message: str) -> None:
    """Append an event to the log ring buffer (newest last, max 100)."""
    if kind not in _LOG_KINDS:
        kind = "INFO"
    _logs.append({
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "type": kind,
        "message": message,
    })
    if len(_logs) > _MAX_LOGS:
        del _logs[0]


def update_market_data(market: MarketSnapshot) -> None:
    global _market_data  # noqa: PLW0603
    _market_data = {
        "last": market.ticker.last if market.ticker else None,
        "open_24h": market.ticker.open_24h if market.ticker else None,
        "trend_candles": len(market.trend_candles),
        "entry_candles": len(market.entry_candles),
        "funding_rate": market.funding_rate,
        "open_interest": market.open_interest,
    }


def update_account_data(account: AccountSnapshot) -> None:
    global _account_data  # noqa: PLW0603
    _account_data = {
        "total_equity": account.balance.total_equity,
        "available_equity": account.balance.available_equity,
        "updated_at": account.balance.updated_at,
        "positions": [
            {
                "instrument": p.instrument,
                "side": p.side,
                "size": p.size,
                "avg_price": p.average_price,
                "unrealized_pnl": p.unrealized_pnl,
                "unrealized_pnl_ratio": p.unrealized_pnl_ratio,
                "liquidation_price": p.liquidation_price,
                "stop_loss": p.stop_loss_price,
                "take_profit": p.take_profit_price,
            }
            for p in account.positions
        ],
    }


def update_latest_decision(decision: dict) -> None:
    global _latest_decision  # noqa: PLW0603
    _latest_decision = {**decision, "timestamp": datetime.now(timezone.utc).isoformat()}


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get("/status")
async def get_status():
    """Return engine state, last snapshots, last decision and the event log."""
    running = bool(_engine is not None and _engine.is_active)
    return {
        "isRunning": running,
        "marketData": _market_data,
        "accountData": _account_data,
        "latestDecision": _latest_decision,
        "logs": list(_logs),
    }


@router.post("/toggle")
async def toggle(body: dict):
    """Pause or resume the trading loop.

    Expects ``{"running": true|false}``.
    """
    running = bool(body.get("running", False))
    if _engine is None:
        return {"isRunning": False, "error": "Engine not configured"}
    if running:
        _engine.resume()
        push_log("INFO", "Trading resumed")
    else:
        _engine.pause()
        push_log("WARNING", "Trading paused")
    logger.info("Engine %s via API", "resumed" if running else "paused")
    return {"isRunning": _engine.is_active}
