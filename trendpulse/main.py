"""TrendPulse — application entry point.

Boots the FastAPI internal server and provides the CLI entry point for
running the trading loop (simulated or live).
"""

import json
import logging

from fastapi import FastAPI

from trendpulse.api.routers import router

app = FastAPI(title="TrendPulse Internal API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("trendpulse")


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


def warn_if_live(simulation: bool) -> bool:
    """Log a prominent warning when simulation is disabled.

    Returns ``True`` when trading live.
    """
    if not simulation:
        logger.warning(
            "LIVE TRADING MODE — Real money at risk! Starting in 5 seconds..."
        )
        return True
    return False


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments and dispatch to the appropriate mode."""
    import argparse
    import asyncio
    import signal
    import time

    from trendpulse.api.routers import configure_routers
    from trendpulse.broker.base import build_client
    from trendpulse.config import load_config
    from trendpulse.engine import TradingEngine

    parser = argparse.ArgumentParser(description="TrendPulse trading bot")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle, print the result and exit",
    )
    parser.add_argument(
        "--engine-only",
        action="store_true",
        help="Run the trading loop without the API server",
    )
    parser.add_argument("--env-file", help="Path to a .env file")
    args = parser.parse_args()

    config = load_config(args.env_file)

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if warn_if_live(config.simulation):
        time.sleep(5)

    client = build_client(config)
    engine = TradingEngine(config=config, client=client)
    configure_routers(engine=engine)

    if args.once:
        result = asyncio.run(engine.run_once())
        print(json.dumps(result, indent=2, ensure_ascii=False))
        return

    def handle_shutdown(signum, frame):
        logger.info("Shutdown signal received — stopping gracefully.")
        engine.stop()

    signal.signal(signal.SIGINT, handle_shutdown)

    if args.engine_only:
        asyncio.run(_run_engine_only(engine))
    else:
        asyncio.run(_run_with_api(engine, config.health_port))


async def _run_engine_only(engine) -> None:
    logger.info("Starting TrendPulse engine (no API) for %s.", engine.instrument)
    await engine.run()
    logger.info("TrendPulse engine stopped.")


async def _run_with_api(engine, port: int) -> None:
    """Start the API server and the trading loop concurrently."""
    import asyncio

    import uvicorn

    logger.info("Starting TrendPulse for %s.", engine.instrument)

    uvi_config = uvicorn.Config(
        app,
        host="0.0.0.0",
        port=port,
        log_level="info",
    )
    server = uvicorn.Server(uvi_config)

    logger.info("Status API available at http://localhost:%d/api/status", port)
    results = await asyncio.gather(
        server.serve(),
        engine.run(),
        return_exceptions=True,
    )
    logger.info("TrendPulse stopped. Results: %s", results)


if __name__ == "__main__":
    _run_cli()
