"""Error types and error classification for the database gateway."""

import json
from typing import Any, Mapping, Optional

# MySQL client error CR_SERVER_GONE_ERROR
GONE_AWAY_CODES = frozenset({2006})
GONE_AWAY_MESSAGES = ("MySQL server has gone away",)


class GatewayError(Exception):
    """Base class for all database gateway errors."""

    pass


class ConfigurationError(GatewayError):
    """Exception raised for missing or invalid gateway configuration."""

    pass


class DatabaseConnectionError(GatewayError):
    """Exception raised when the gateway cannot open a connection.

    This exception wraps the underlying driver error together with the
    data-source locator that was used.
    """

    def __init__(self, message: str, locator: Optional[str] = None):
        super().__init__(message)
        self.locator = locator


class QueryError(GatewayError):
    """Exception raised when a statement fails to execute."""

    def __init__(
        self,
        message: str,
        sql: str,
        params: Optional[Mapping[str, Any]] = None,
        attempts: int = 1,
    ):
        super().__init__(message)
        self.sql = sql
        self.params = dict(params or {})
        self.attempts = attempts


def _error_code(error: BaseException) -> Optional[int]:
    """Extract a numeric driver error code, if the error carries one."""
    # SQLAlchemy DBAPIError keeps the driver exception on .orig
    orig = getattr(error, "orig", None) or error

    errno = getattr(orig, "errno", None)
    if isinstance(errno, int):
        return errno

    args = getattr(orig, "args", ())
    if args and isinstance(args[0], int):
        return args[0]

    return None


def is_gone_away(error: BaseException) -> bool:
    """Check whether an error means the server closed an idle connection.

    The driver error code is checked first. Message inspection is only a
    fallback for drivers that do not report a code.

    Args:
        error: Exception raised while executing a statement

    Returns:
        True if the connection should be replaced and the statement retried
    """
    code = _error_code(error)
    if code is not None:
        return code in GONE_AWAY_CODES

    message = str(error)
    return any(marker in message for marker in GONE_AWAY_MESSAGES)


def serialize_params(params: Optional[Mapping[str, Any]]) -> str:
    """Render statement parameters for diagnostics."""
    return json.dumps(dict(params or {}), default=str, sort_keys=True)
