"""Instruction-level failures raised by the broker clients and the executor."""


class ExecutionError(Exception):
    """Base class for failures that abort the current instruction."""


class ExchangeRejectedError(ExecutionError):
    """The exchange answered with a non-zero response code.

    Args:
        code: Exchange response code (string, as sent by the exchange).
        msg: Exchange message text, passed through verbatim.
        path: Request path of the rejected call.
    """

    def __init__(self, code: str, msg: str, path: str = "") -> None:
        self.code = code
        self.msg = msg
        self.path = path
        where = f" {path}" if path else ""
        super().__init__(f"{msg} (code {code}{where})")


class NetworkFailureError(ExecutionError):
    """Transport-level failure: timeout, connection error, bad HTTP status."""


class InvalidOrderError(ExecutionError):
    """Order parameters rejected locally before any network call."""
