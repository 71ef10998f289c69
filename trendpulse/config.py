"""TrendPulse — application configuration.

Loads .env variables into a typed config object.
Validates exchange credentials on startup unless running in simulation.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv


_CREDENTIAL_VARS = [
    "OKX_API_KEY",
    "OKX_SECRET_KEY",
    "OKX_PASSPHRASE",
]

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    okx_api_key: str
    okx_secret_key: str
    okx_passphrase: str
    simulation: bool
    instrument_id: str
    contract_value: float  # underlying units per contract
    leverage: str
    margin_mode: str  # "isolated" or "cross"
    trend_bar: str
    entry_bar: str
    candle_limit: int
    risk_per_trade_pct: float
    max_leverage: float
    poll_interval_seconds: int
    request_timeout: float
    log_level: str
    health_port: int

    @property
    def okx_base_url(self) -> str:
        """Return the REST API base URL."""
        return "https://www.okx.com"

    @property
    def simulated_flag(self) -> str:
        """Value of the simulated-trading header ("0" = real trading)."""
        return "1" if self.simulation else "0"


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the missing variable when a
    credential is absent and simulation is disabled.
    """
    load_dotenv(dotenv_path=env_path)

    simulation = os.environ.get("SIMULATION", "true").strip().lower() in _TRUTHY
    if not simulation:
        missing = [v for v in _CREDENTIAL_VARS if not os.environ.get(v)]
        if missing:
            raise ValueError(
                f"Missing required environment variable(s): {', '.join(missing)}"
            )

    return Config(
        okx_api_key=os.environ.get("OKX_API_KEY", ""),
        okx_secret_key=os.environ.get("OKX_SECRET_KEY", ""),
        okx_passphrase=os.environ.get("OKX_PASSPHRASE", ""),
        simulation=simulation,
        instrument_id=os.environ.get("INSTRUMENT_ID", "ETH-USDT-SWAP"),
        contract_value=float(os.environ.get("CONTRACT_VALUE", "0.1")),
        leverage=os.environ.get("LEVERAGE", "10"),
        margin_mode=os.environ.get("MARGIN_MODE", "isolated"),
        trend_bar=os.environ.get("TREND_BAR", "1H"),
        entry_bar=os.environ.get("ENTRY_BAR", "3m"),
        candle_limit=int(os.environ.get("CANDLE_LIMIT", "300")),
        risk_per_trade_pct=float(os.environ.get("RISK_PER_TRADE_PCT", "5.0")),
        max_leverage=float(os.environ.get("MAX_LEVERAGE", "20.0")),
        poll_interval_seconds=int(os.environ.get("POLL_INTERVAL_SECONDS", "60")),
        request_timeout=float(os.environ.get("REQUEST_TIMEOUT", "10.0")),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        health_port=int(os.environ.get("HEALTH_PORT", "8080")),
    )
