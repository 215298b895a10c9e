"""ApiResponse: Uniform response envelope for resolution results and errors.

Successful results and failures leave the core in the same shape:

.. code-block:: python

    {
        "status": "SUCCESS" | "ERROR",
        "code": "SUCCESS" | "<error code>",
        "message": "...",
        "data": {...} | None,
        "error": {"code", "message", "details", "traceId"} | None,
        "timestamp": "2024-01-01T00:00:00+00:00",
    }

:func:`handle_error` turns any exception into an envelope plus the HTTP
status from the :class:`ResponseCode` registry.
"""

from __future__ import annotations

import dataclasses
import logging
import traceback
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, TypedDict

from .errors import (
    ExternalServiceError,
    InternalError,
    OracleError,
    ResponseCode,
)

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "SUCCESS"
STATUS_ERROR = "ERROR"


class ApiError(TypedDict, total=False):
    """Error body of a failed response.

    :ivar code: Registry code (e.g., "STALE_DATA").
    :ivar message: Human-readable message.
    :ivar details: Optional structured details.
    :ivar traceId: Correlation identifier for tracing.
    """

    code: str
    message: str
    details: Any
    traceId: str


def to_jsonable(value: Any) -> Any:
    """Convert result values into JSON-compatible structures.

    Dataclasses become dicts, decimals become strings (to keep precision),
    enums become their values and bytes become 0x-prefixed hex.

    :param value: Value to convert.
    :returns: JSON-compatible value.
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            field.name: to_jsonable(getattr(value, field.name))
            for field in dataclasses.fields(value)
        }
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bytes):
        return "0x" + value.hex()
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def new_trace_id() -> str:
    """Return a short correlation identifier."""
    return uuid.uuid4().hex[:8]


@dataclasses.dataclass
class ApiResponse:
    """Response envelope.

    :ivar status: "SUCCESS" or "ERROR".
    :ivar code: Registry code string.
    :ivar message: Summary message.
    :ivar data: Result payload on success.
    :ivar error: Error body on failure.
    :ivar timestamp: ISO-8601 creation time (UTC).
    """

    status: str
    code: str
    message: str | None = None
    data: Any = None
    error: ApiError | None = None
    timestamp: str = dataclasses.field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS

    @classmethod
    def success(cls, data: Any, message: str | None = None) -> ApiResponse:
        return cls(
            status=STATUS_SUCCESS,
            code=ResponseCode.SUCCESS.code,
            message=message or ResponseCode.SUCCESS.message,
            data=to_jsonable(data),
        )

    @classmethod
    def failure(
        cls,
        response_code: ResponseCode,
        message: str | None = None,
        details: Any = None,
        trace_id: str | None = None,
    ) -> ApiResponse:
        msg = message or response_code.message
        error: ApiError = {"code": response_code.code, "message": msg}
        if details is not None:
            error["details"] = to_jsonable(details)
        if trace_id:
            error["traceId"] = trace_id
        return cls(
            status=STATUS_ERROR,
            code=response_code.code,
            message=msg,
            error=error,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "code": self.code,
            "message": self.message,
            "data": self.data,
            "error": self.error,
            "timestamp": self.timestamp,
        }


def handle_error(exc: BaseException, *, debug: bool = False) -> tuple[int, ApiResponse]:
    """Map an exception to an HTTP status and error envelope.

    Validation, not-found, state and staleness errors keep their message and
    details. External service and internal errors are reduced to the generic
    registry message unless ``debug`` is set, in which case the raw message
    (or traceback for unexpected exceptions) is returned in ``details``.

    :param exc: Exception raised by the core.
    :param debug: Development mode flag.
    :returns: Tuple of (http_status, ApiResponse).
    """
    trace_id = new_trace_id()

    if isinstance(exc, OracleError):
        code = exc.response_code
        if isinstance(exc, (ExternalServiceError, InternalError)):
            logger.error(f"[{trace_id}] {code.code}: {exc.message}")
            details = {"error": exc.message, "details": exc.details} if debug else None
            response = ApiResponse.failure(code, None, details, trace_id)
        else:
            logger.warning(f"[{trace_id}] {code.code}: {exc.message}")
            response = ApiResponse.failure(code, exc.message, exc.details, trace_id)
        return code.http_status, response

    logger.error(f"[{trace_id}] Unexpected error: {exc!r}")
    code = ResponseCode.INTERNAL_SERVER_ERROR
    details = None
    if debug:
        details = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    response = ApiResponse.failure(code, "An unexpected error occurred", details, trace_id)
    return code.http_status, response
