"""Response code registry and exception taxonomy.

Every error raised by the resolution core maps to exactly one
:class:`ResponseCode`, which fixes the machine-readable code and the HTTP
status an outer transport layer should use.

.. code-block:: python

    >>> err = StaleDataError("ETH/USD", staleness_seconds=7200, heartbeat_seconds=3600)
    >>> err.response_code.http_status
    422
    >>> err.retryable
    False
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ResponseCode(Enum):
    """Fixed registry of response codes.

    Each member value is a ``(code, message, http_status)`` tuple.
    """

    SUCCESS = ("SUCCESS", "Operation successful", 200)

    # Client errors
    BAD_REQUEST = ("BAD_REQUEST", "Bad request", 400)
    VALIDATION_ERROR = ("VALIDATION_ERROR", "Validation failed", 400)
    INVALID_REQUEST = ("INVALID_REQUEST", "Invalid oracle request", 400)
    UNSUPPORTED_ORACLE_TYPE = ("UNSUPPORTED_ORACLE_TYPE", "Unsupported oracle type", 400)
    NOT_FOUND = ("NOT_FOUND", "Resource not found", 404)
    FEED_NOT_FOUND = ("FEED_NOT_FOUND", "Price feed not available", 404)
    REQUEST_NOT_FOUND = ("REQUEST_NOT_FOUND", "Oracle request not found", 404)
    CONFLICT = ("CONFLICT", "Resource conflict", 409)

    # Business errors
    INVALID_STATE = ("INVALID_STATE", "Invalid state transition", 409)
    STALE_DATA = ("STALE_DATA", "Price data is stale", 422)

    # Server errors
    INTERNAL_SERVER_ERROR = ("INTERNAL_SERVER_ERROR", "Internal server error", 500)
    EXTERNAL_SERVICE_ERROR = ("EXTERNAL_SERVICE_ERROR", "External service error", 502)
    EXTERNAL_SERVICE_TIMEOUT = ("EXTERNAL_SERVICE_TIMEOUT", "External service timed out", 504)

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def message(self) -> str:
        return self.value[1]

    @property
    def http_status(self) -> int:
        return self.value[2]


class OracleError(Exception):
    """Base exception for the resolution core.

    :cvar response_code: Registry entry this error maps to.
    :cvar retryable: Whether a caller may retry the operation with backoff.
    :ivar message: Human-readable message.
    :ivar details: Optional structured details for the caller.
    """

    response_code: ResponseCode = ResponseCode.INTERNAL_SERVER_ERROR
    retryable: bool = False

    def __init__(self, message: str | None = None, details: Any = None) -> None:
        self.message = message or self.response_code.message
        self.details = details
        super().__init__(self.message)


class ValidationError(OracleError):
    """Malformed or missing caller input. Never retried."""

    response_code = ResponseCode.VALIDATION_ERROR


class InvalidRequestError(ValidationError):
    """Optimistic oracle request or proposal with invalid arguments."""

    response_code = ResponseCode.INVALID_REQUEST


class UnsupportedOracleTypeError(ValidationError):
    """Raised by the gateway for an unknown oracle type tag."""

    response_code = ResponseCode.UNSUPPORTED_ORACLE_TYPE

    def __init__(self, oracle_type: Any) -> None:
        super().__init__(f"Unsupported oracle type: {oracle_type!r}")
        self.oracle_type = oracle_type


class NotFoundError(OracleError):
    """Unknown symbol, market or request."""

    response_code = ResponseCode.NOT_FOUND


class FeedNotFoundError(NotFoundError):
    """Symbol is not present in the feed registry."""

    response_code = ResponseCode.FEED_NOT_FOUND

    def __init__(self, symbol: str) -> None:
        super().__init__(f"Price feed not available for {symbol}", {"symbol": symbol})
        self.symbol = symbol


class RequestNotFoundError(NotFoundError):
    """No optimistic oracle request exists for the given key."""

    response_code = ResponseCode.REQUEST_NOT_FOUND


class StateConflictError(OracleError):
    """Illegal state transition. Never silently coerced."""

    response_code = ResponseCode.CONFLICT


class InvalidStateError(StateConflictError):
    """Oracle request is not in a state that allows the requested transition."""

    response_code = ResponseCode.INVALID_STATE


class StaleDataError(OracleError):
    """Observation is older than the feed heartbeat.

    :ivar symbol: Feed symbol.
    :ivar staleness_seconds: Age of the observation.
    :ivar heartbeat_seconds: Maximum accepted age.
    """

    response_code = ResponseCode.STALE_DATA

    def __init__(self, symbol: str, staleness_seconds: int, heartbeat_seconds: int) -> None:
        super().__init__(
            f"Price data for {symbol} is stale "
            f"({staleness_seconds}s old, heartbeat {heartbeat_seconds}s)",
            {
                "symbol": symbol,
                "stalenessSeconds": staleness_seconds,
                "heartbeatSeconds": heartbeat_seconds,
            },
        )
        self.symbol = symbol
        self.staleness_seconds = staleness_seconds
        self.heartbeat_seconds = heartbeat_seconds


class ExternalServiceError(OracleError):
    """A feed or ledger call failed. Retryable with backoff."""

    response_code = ResponseCode.EXTERNAL_SERVICE_ERROR
    retryable = True


class ExternalServiceTimeoutError(ExternalServiceError):
    """A feed or ledger call exceeded its timeout."""

    response_code = ResponseCode.EXTERNAL_SERVICE_TIMEOUT


class InternalError(OracleError):
    """Unexpected failure inside the core."""

    response_code = ResponseCode.INTERNAL_SERVER_ERROR
