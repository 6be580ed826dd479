"""Request logging and global error handling for the HTTP pipeline."""
from __future__ import annotations

import json
import logging
import time
import traceback
from datetime import datetime, timezone
from typing import Dict, Mapping

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from .errors import CORRELATION_HEADER, classify_exception, error_response, new_correlation_id

request_logger = logging.getLogger("usermanagement.requests")
error_logger = logging.getLogger("usermanagement.errors")

SENSITIVE_HEADERS = frozenset({"authorization", "cookie", "x-api-key"})
REDACTED = "[REDACTED]"
GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."

_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


def redact_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    return {
        key: REDACTED if key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


def _client_ip(request: Request) -> str:
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client is not None and request.client.host:
        return request.client.host
    return "Unknown"


def _decode(body: bytes) -> str:
    return body.decode("utf-8", errors="replace")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request and the response produced for it.

    The response body is buffered so it can be logged, then handed to the
    client byte for byte.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        method = request.method
        path = request.url.path

        request_body = ""
        if method in _BODY_METHODS:
            request_body = _decode(await request.body())

        request_logger.info(
            "Incoming request: %s",
            json.dumps(
                {
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "type": "Request",
                    "method": method,
                    "path": path,
                    "queryString": request.url.query,
                    "headers": redact_headers(request.headers),
                    "body": request_body,
                    "clientIp": _client_ip(request),
                    "userAgent": request.headers.get("user-agent", ""),
                }
            ),
        )

        try:
            response = await call_next(request)
        except Exception:
            request_logger.error(
                "An error occurred while processing the request: %s %s",
                method,
                path,
                exc_info=True,
            )
            raise

        chunks = []
        async for chunk in response.body_iterator:  # type: ignore[attr-defined]
            chunks.append(chunk if isinstance(chunk, bytes) else chunk.encode("utf-8"))
        body = b"".join(chunks)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        request_logger.log(
            level,
            "Outgoing response: %s",
            json.dumps(
                {
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "type": "Response",
                    "statusCode": response.status_code,
                    "elapsedMs": elapsed_ms,
                    "headers": redact_headers(response.headers),
                    "body": _decode(body),
                    "requestMethod": method,
                    "requestPath": path,
                }
            ),
        )

        raw_headers = list(response.raw_headers)
        if not any(key == b"content-length" for key, _ in raw_headers):
            raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))

        replayed = Response(
            content=body,
            status_code=response.status_code,
            background=getattr(response, "background", None),
        )
        # Raw pairs keep repeated headers such as Set-Cookie intact.
        replayed.raw_headers = raw_headers
        return replayed


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Outermost recovery boundary for the API.

    Assigns the correlation id for the request, and converts any exception
    that escapes the inner middleware or the handlers into the JSON error
    envelope. Exception detail is only exposed when ``development`` is set.
    """

    def __init__(self, app: ASGIApp, *, development: bool = False) -> None:
        super().__init__(app)
        self._development = development

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = new_correlation_id()
        request.state.correlation_id = correlation_id

        try:
            response = await call_next(request)
        except Exception as exc:
            response = self._handle_exception(request, exc)

        response.headers[CORRELATION_HEADER] = correlation_id
        return response

    def _handle_exception(self, request: Request, exc: Exception) -> Response:
        status_code, label = classify_exception(exc)
        if label is None:
            label = "Internal server error"
            message = str(exc) if self._development else GENERIC_ERROR_MESSAGE
        else:
            message = str(exc)

        details = None
        if self._development:
            inner = exc.__cause__
            details = {
                "exceptionType": type(exc).__name__,
                "stackTrace": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
                "innerException": str(inner) if inner is not None else None,
            }

        log_level = logging.ERROR if status_code == status.HTTP_500_INTERNAL_SERVER_ERROR else logging.WARNING
        error_logger.log(
            log_level,
            "Exception occurred while processing request: %s %s - Status: %s - Error: %s",
            request.method,
            request.url.path,
            status_code,
            label,
            exc_info=exc,
        )

        return error_response(request, status_code, label, message, details=details)


__all__ = [
    "ErrorHandlingMiddleware",
    "GENERIC_ERROR_MESSAGE",
    "REDACTED",
    "RequestLoggingMiddleware",
    "SENSITIVE_HEADERS",
    "redact_headers",
]
