"""Request signing for private OKX REST calls.

``signature = Base64(HMAC-SHA256(secret, timestamp + method + path + body))``
where *path* includes the query string and *body* is the exact serialized
payload (empty for bodyless requests).
"""

import base64
import hashlib
import hmac
from datetime import datetime, timezone
from typing import Optional


def iso_timestamp(now: Optional[datetime] = None) -> str:
    """Return an ISO-8601 UTC timestamp with millisecond precision."""
    if now is None:
        now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def sign(secret_key: str, timestamp: str, method: str, request_path: str, body: str = "") -> str:
    """Compute the Base64 HMAC-SHA256 signature of the canonical string."""
    message = f"{timestamp}{method.upper()}{request_path}{body}"
    digest = hmac.new(
        secret_key.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def build_headers(
    api_key: str,
    secret_key: str,
    passphrase: str,
    method: str,
    request_path: str,
    body: str = "",
    simulated_flag: str = "0",
    timestamp: Optional[str] = None,
) -> dict[str, str]:
    """Return the full header set for a signed request."""
    if timestamp is None:
        timestamp = iso_timestamp()
    return {
        "Content-Type": "application/json",
        "OK-ACCESS-KEY": api_key,
        "OK-ACCESS-PASSPHRASE": passphrase,
        "OK-ACCESS-SIGN": sign(secret_key, timestamp, method, request_path, body),
        "OK-ACCESS-TIMESTAMP": timestamp,
        "x-simulated-trading": simulated_flag,
    }
