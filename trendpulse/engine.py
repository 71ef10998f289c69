"""TrendPulse — Trading engine (orchestration loop).

Connects data collection, the decision engine and order execution into a
single polling loop. Each cycle: fetch market + account → build one
trading instruction → execute it (unless it is a hold).
"""

import asyncio
import logging

from trendpulse.api.routers import (
    push_log,
    update_account_data,
    update_latest_decision,
    update_market_data,
)
from trendpulse.broker.base import ExchangeProtocol
from trendpulse.config import Config
from trendpulse.decision import build_instruction
from trendpulse.errors import ExecutionError
from trendpulse.execution import OrderExecutor

logger = logging.getLogger("trendpulse")


class TradingEngine:
    """Runs one evaluation-and-execution cycle per call.

    Args:
        config: Application configuration.
        client: ``OkxClient`` or ``SimulatedClient`` (or compatible duck-type).
    """

    def __init__(self, config: Config, client: ExchangeProtocol) -> None:
        self._config = config
        self._client = client
        self._executor = OrderExecutor(client)
        self._cycle_lock = asyncio.Lock()
        self._running: bool = False
        self._paused: bool = False
        self._cycle_count: int = 0

    @property
    def instrument(self) -> str:
        return self._config.instrument_id

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def is_active(self) -> bool:
        """``True`` while the loop runs and is not paused."""
        return self._running and not self._paused

    # ── Lifecycle ────────────────────────────────────────────────────────

    def stop(self) -> None:
        """Signal the engine to stop after the current cycle."""
        self._running = False

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    # ── Polling loop ─────────────────────────────────────────────────────

    async def run(
        self,
        poll_interval: int | None = None,
        max_cycles: int = 0,
    ) -> list[dict]:
        """Run the trading loop until stopped.

        Args:
            poll_interval: Seconds between cycles. Defaults to config.
            max_cycles: Stop after this many cycles (0 = unlimited).

        Returns:
            List of per-cycle result dicts.
        """
        if poll_interval is None:
            poll_interval = self._config.poll_interval_seconds
        results: list[dict] = []
        cycle = 0
        self._running = True

        while self._running:
            if not self._paused:
                cycle += 1
                try:
                    result = await self.run_once()
                    results.append(result)
                    logger.info("Cycle %d: %s", cycle, result.get("action", "unknown"))
                except Exception as exc:
                    logger.error("Cycle %d error: %s", cycle, exc)
                    push_log("ERROR", f"Cycle error: {exc}")
                    results.append({"action": "error", "reason": str(exc)})

                if max_cycles > 0 and cycle >= max_cycles:
                    break

            # Always yields to the event loop; at least 1s per tick while paused
            wait = max(poll_interval, 1) if self._paused else poll_interval
            if wait <= 0:
                await asyncio.sleep(0)
            # Interruptible sleep, checks _running every second
            for _ in range(wait):
                if not self._running:
                    break
                await asyncio.sleep(1)

        self._running = False
        return results

    # ── Single cycle ─────────────────────────────────────────────────────

    async def run_once(self) -> dict:
        """Execute one trading cycle.

        Returns a dict describing the outcome:

        - ``{"action": "skipped", "reason": "cycle_in_progress"}``
        - ``{"action": "hold", "status": "idle", ...}``
        - ``{"action": "buy", "status": "executed", ...}``
        - ``{"action": "close", "status": "failed", "error": "..."}``

        Data collection failures propagate to the caller.
        """
        if self._cycle_lock.locked():
            logger.warning("Previous cycle still running, skipping")
            return {"action": "skipped", "reason": "cycle_in_progress"}

        async with self._cycle_lock:
            self._cycle_count += 1
            return await self._cycle()

    async def _cycle(self) -> dict:
        # 1 ── Snapshots (independent reads, fetched concurrently)
        market, account = await asyncio.gather(
            self._client.fetch_market(),
            self._client.fetch_account(),
        )
        update_market_data(market)
        update_account_data(account)

        # 2 ── Decision
        instruction = build_instruction(market, account, self._config)
        update_latest_decision(instruction.to_dict())

        result = {
            "action": instruction.action,
            "size": instruction.size,
            "stop_loss": instruction.stop_loss,
            "reason": instruction.reason,
            "status": "idle",
        }
        if instruction.action == "hold":
            push_log("INFO", instruction.reason)
            return result

        # 3 ── Execution
        push_log(
            "TRADE",
            f"{instruction.action.upper()} size={instruction.size} "
            f"SL={instruction.stop_loss}: {instruction.reason}",
        )
        position = account.position_for(self.instrument)
        try:
            report = await self._executor.execute(instruction, position)
        except ExecutionError as exc:
            logger.error("Execution of %s failed: %s", instruction.action, exc)
            push_log("ERROR", f"{instruction.action.upper()} failed: {exc}")
            result.update(status="failed", error=str(exc))
            return result

        push_log("SUCCESS", report.message)
        result.update(status="executed", message=report.message)
        return result
