"""Error envelope shared by the middleware and the route handlers."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Tuple, Type

from fastapi import Request, status
from fastapi.responses import JSONResponse

CORRELATION_HEADER = "X-Correlation-ID"


class ConflictError(Exception):
    """Raised by handler code to reject an operation with a 409.

    The record service reports its own conflicts as outcomes; this exception
    is the escape hatch for code that has no outcome to return.
    """


EXCEPTION_STATUS_MAP: Tuple[Tuple[Tuple[Type[BaseException], ...], int, str], ...] = (
    ((ConflictError,), status.HTTP_409_CONFLICT, "Business rule violation"),
    ((PermissionError,), status.HTTP_401_UNAUTHORIZED, "Unauthorized access"),
    ((TimeoutError,), status.HTTP_408_REQUEST_TIMEOUT, "Request timeout"),
    ((ConnectionError,), status.HTTP_502_BAD_GATEWAY, "External service error"),
    # IndexError and TypeError fall through to 500.
    ((KeyError,), status.HTTP_404_NOT_FOUND, "Resource not found"),
    ((ValueError,), status.HTTP_400_BAD_REQUEST, "Invalid argument"),
)


def classify_exception(exc: BaseException) -> Tuple[int, Optional[str]]:
    """Return the status code and error label for ``exc``.

    The label is ``None`` for exceptions without a known mapping; those are
    reported as internal server errors.
    """

    for types, status_code, label in EXCEPTION_STATUS_MAP:
        if isinstance(exc, types):
            return status_code, label
    return status.HTTP_500_INTERNAL_SERVER_ERROR, None


def new_correlation_id() -> str:
    return uuid.uuid4().hex


def correlation_id_for(request: Request) -> str:
    correlation_id = getattr(request.state, "correlation_id", None)
    if not correlation_id:
        correlation_id = new_correlation_id()
        request.state.correlation_id = correlation_id
    return correlation_id


def error_body(
    error: str,
    message: str,
    correlation_id: str,
    *,
    errors: Optional[Iterable[str]] = None,
    details: Optional[Dict[str, object]] = None,
) -> Dict[str, object]:
    body: Dict[str, object] = {
        "error": error,
        "message": message,
        "correlationId": correlation_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if errors is not None:
        body["errors"] = list(errors)
    if details is not None:
        body["details"] = details
    return body


def error_response(
    request: Request,
    status_code: int,
    error: str,
    message: str,
    *,
    errors: Optional[Iterable[str]] = None,
    details: Optional[Dict[str, object]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    correlation_id = correlation_id_for(request)
    response_headers = {CORRELATION_HEADER: correlation_id}
    if headers:
        response_headers.update(headers)
    return JSONResponse(
        status_code=status_code,
        content=error_body(error, message, correlation_id, errors=errors, details=details),
        headers=response_headers,
    )


__all__ = [
    "CORRELATION_HEADER",
    "ConflictError",
    "EXCEPTION_STATUS_MAP",
    "classify_exception",
    "correlation_id_for",
    "error_body",
    "error_response",
    "new_correlation_id",
]
