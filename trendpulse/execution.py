"""Execution client — turns one TradingInstruction into exchange calls.

Calls are issued sequentially in a fixed order per action:

- every non-hold action: ensure dual-direction position mode (best-effort)
- ``close``:       close long, then close short; success if either succeeds
- ``buy``/``sell``: set leverage → market order with attached stop
- ``update_tpsl``: cancel pending algo orders for the side → place one
  reduce-only conditional order (skipped when no new price is given)

Nothing is retried; the first fatal failure aborts the instruction.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Optional

from trendpulse.broker.base import ExchangeProtocol
from trendpulse.broker.models import ApiResponse, Position
from trendpulse.decision import TradingInstruction
from trendpulse.errors import (
    ExchangeRejectedError,
    ExecutionError,
    InvalidOrderError,
    NetworkFailureError,
)

logger = logging.getLogger("trendpulse.execution")

LONG_SHORT_MODE = "long_short_mode"
MIN_ORDER_SIZE = 0.01
SIZE_DECIMALS = 2
# Both sides are tried in this order; the exchange, not local state, knows
# which one is actually open.
CLOSE_ATTEMPTS = ("long", "short")


@dataclass(frozen=True)
class ExecutionReport:
    """Outcome of one executed instruction."""

    action: str
    message: str
    responses: list[ApiResponse] = field(default_factory=list)


def _parse_price(value: Optional[str], label: str) -> Optional[str]:
    """Return *value* if it is a positive price, ``None`` if unset.

    Raises ``InvalidOrderError`` for text that is not a number.
    """
    if value is None or str(value).strip() in ("", "0"):
        return None
    try:
        price = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidOrderError(f"Invalid {label} price: {value!r}") from exc
    if not math.isfinite(price):
        raise InvalidOrderError(f"Invalid {label} price: {value!r}")
    return str(value).strip() if price > 0 else None


def _quantize_size(value: str) -> str:
    try:
        size = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidOrderError(f"Invalid order size: {value!r}") from exc
    if not math.isfinite(size) or size < MIN_ORDER_SIZE:
        raise InvalidOrderError(
            f"Order size {value!r} below minimum of {MIN_ORDER_SIZE} contracts"
        )
    return f"{size:.{SIZE_DECIMALS}f}"


def _format_size(size: float) -> str:
    text = f"{size:.{SIZE_DECIMALS}f}".rstrip("0").rstrip(".")
    return text or "0"


class OrderExecutor:
    """Executes trading instructions against an exchange client.

    Args:
        client: ``OkxClient``, ``SimulatedClient`` or any duck-type of
            ``ExchangeProtocol``.
    """

    def __init__(self, client: ExchangeProtocol) -> None:
        self._client = client

    async def execute(
        self,
        instruction: TradingInstruction,
        position: Optional[Position] = None,
    ) -> ExecutionReport:
        """Execute *instruction*.

        Args:
            instruction: The cycle's trading instruction.
            position: The tracked open position; required for
                ``update_tpsl``.

        Raises:
            InvalidOrderError: Bad parameters (before any network call).
            ExchangeRejectedError: The exchange rejected a fatal call.
            NetworkFailureError: A fatal call failed in transport.
        """
        action = instruction.action
        if action == "hold":
            return ExecutionReport(action=action, message="Nothing to execute")

        if action in ("buy", "sell"):
            size = _quantize_size(instruction.size)
            stop_loss = _parse_price(instruction.stop_loss, "stop-loss")
            await self._ensure_long_short_mode()
            return await self._open(instruction, size, stop_loss)

        if action == "update_tpsl":
            if position is None:
                raise InvalidOrderError("No open position to update TP/SL for")
            stop_loss = _parse_price(instruction.stop_loss, "stop-loss")
            take_profit = _parse_price(instruction.take_profit, "take-profit")
            await self._ensure_long_short_mode()
            return await self._update_tpsl(position, stop_loss, take_profit)

        if action == "close":
            await self._ensure_long_short_mode()
            return await self._close()

        raise InvalidOrderError(f"Unknown action: {action!r}")

    # ── Steps ────────────────────────────────────────────────────────────

    async def _ensure_long_short_mode(self) -> None:
        """Switch the account to dual-direction mode; failures only warn."""
        try:
            mode = await self._client.get_position_mode()
            if mode and mode != LONG_SHORT_MODE:
                logger.info("Switching position mode %s → %s", mode, LONG_SHORT_MODE)
                await self._client.set_position_mode(LONG_SHORT_MODE)
        except ExecutionError as exc:
            logger.warning("Position mode check failed: %s", exc)

    async def _close(self) -> ExecutionReport:
        successes: list[ApiResponse] = []
        failures: list[str] = []
        errors: list[ExecutionError] = []

        for side in CLOSE_ATTEMPTS:
            try:
                resp = await self._client.close_position(side)
            except ExecutionError as exc:
                logger.warning("Close %s failed: %s", side, exc)
                failures.append(f"{side}: {exc}")
                errors.append(exc)
                continue
            logger.info("Closed %s position", side)
            successes.append(resp)

        if not successes:
            raise _combined_close_error(errors, failures)
        return ExecutionReport(
            action="close",
            message="Position closed",
            responses=successes,
        )

    async def _open(
        self,
        instruction: TradingInstruction,
        size: str,
        stop_loss: Optional[str],
    ) -> ExecutionReport:
        buying = instruction.action == "buy"
        position_side = "long" if buying else "short"
        side = "buy" if buying else "sell"

        leverage_resp = await self._client.set_leverage(instruction.leverage, position_side)

        order_resp = await self._client.place_market_order(
            side=side,
            position_side=position_side,
            size=size,
            stop_loss=stop_loss,
        )
        logger.info(
            "Placed %s market order: %s contracts, SL=%s",
            side, size, stop_loss or "none",
        )
        return ExecutionReport(
            action=instruction.action,
            message=f"{side.upper()} {size} contracts",
            responses=[leverage_resp, order_resp],
        )

    async def _update_tpsl(
        self,
        position: Position,
        stop_loss: Optional[str],
        take_profit: Optional[str],
    ) -> ExecutionReport:
        responses: list[ApiResponse] = []

        pending = await self._client.get_pending_algo_orders()
        to_cancel = [
            o.algo_id for o in pending
            if o.instrument == position.instrument and o.position_side == position.side
        ]
        if to_cancel:
            responses.append(await self._client.cancel_algo_orders(to_cancel))
            logger.info("Cancelled %d algo order(s) on %s", len(to_cancel), position.side)

        if stop_loss is None and take_profit is None:
            return ExecutionReport(
                action="update_tpsl",
                message="No new TP/SL, pending algo orders cancelled",
                responses=responses,
            )

        responses.append(
            await self._client.place_algo_order(
                position_side=position.side,
                size=_format_size(position.size),
                stop_loss=stop_loss,
                take_profit=take_profit,
            )
        )
        logger.info(
            "Updated %s TP/SL: SL=%s TP=%s",
            position.side, stop_loss or "-", take_profit or "-",
        )
        return ExecutionReport(
            action="update_tpsl",
            message="TP/SL updated",
            responses=responses,
        )


def _combined_close_error(errors: list[ExecutionError], failures: list[str]) -> ExecutionError:
    """One error carrying both close legs' messages.

    Keeps ``NetworkFailureError`` when no leg got an answer from the
    exchange; otherwise an ``ExchangeRejectedError`` with the distinct
    rejection codes joined by ``/``.
    """
    message = f"Close position failed ({'; '.join(failures)})"
    rejections = [e for e in errors if isinstance(e, ExchangeRejectedError)]
    if not rejections:
        return NetworkFailureError(message)
    codes = "/".join(dict.fromkeys(e.code for e in rejections))
    return ExchangeRejectedError(codes, message, "/api/v5/trade/close-position")
