"""Token authentication for the user management API.

The scheme implemented here is a placeholder: a token is accepted when it
has the right shape, and the caller's role is read straight from the token
prefix. Nothing is signed, nothing expires and nothing can be revoked, so it
must not be treated as a security boundary.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Mapping, Optional, Tuple

from fastapi import HTTPException, Request, status
from fastapi.security.utils import get_authorization_scheme_param
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from .config import DEFAULT_MIN_TOKEN_LENGTH, DEFAULT_SKIP_PATHS, DEFAULT_TOKEN_ROLES
from .errors import error_response
from .models import Principal, Role

logger = logging.getLogger("usermanagement.security")

API_KEY_HEADER = "X-API-Key"
TOKEN_QUERY_PARAM = "token"


class InvalidTokenError(ValueError):
    """Raised when a token does not have the expected shape."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def extract_token(request: Request) -> Optional[str]:
    """Return the caller's token, or ``None`` when none was supplied.

    Sources are tried in order: ``Authorization: Bearer``, ``X-API-Key`` and
    finally the ``token`` query parameter. A bearer header with an empty
    credential yields an empty string rather than falling through.
    """

    authorization = request.headers.get("authorization")
    if authorization:
        scheme, credentials = get_authorization_scheme_param(authorization)
        if scheme.lower() == "bearer":
            return credentials.strip()

    api_key = request.headers.get(API_KEY_HEADER)
    if api_key:
        return api_key

    query_token = request.query_params.get(TOKEN_QUERY_PARAM)
    if query_token:
        return query_token

    return None


class TokenParser:
    """Validate token shape and derive a :class:`Principal` from it."""

    def __init__(
        self,
        token_roles: Mapping[str, Role] = DEFAULT_TOKEN_ROLES,
        *,
        min_length: int = DEFAULT_MIN_TOKEN_LENGTH,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if not token_roles:
            raise ValueError("At least one token prefix must be configured")
        # Longest prefix first so overlapping prefixes resolve deterministically.
        self._prefixes: Tuple[Tuple[str, Role], ...] = tuple(
            sorted(
                ((prefix.lower() + "_", role) for prefix, role in token_roles.items()),
                key=lambda item: len(item[0]),
                reverse=True,
            )
        )
        self._min_length = min_length
        self._clock = clock or _utcnow

    def role_for(self, token: str) -> Optional[Role]:
        lowered = token.lower()
        for prefix, role in self._prefixes:
            if lowered.startswith(prefix):
                return role
        return None

    def parse(self, token: str) -> Principal:
        if not token or len(token) < self._min_length:
            raise InvalidTokenError("Token is too short")

        role = self.role_for(token)
        if role is None:
            raise InvalidTokenError("Token prefix is not recognised")

        parts = token.split("_")
        if len(parts) < 2:
            raise InvalidTokenError("Token must contain an identity segment")

        user_id = parts[1] or "unknown"
        return Principal(
            user_id=user_id,
            name=f"user_{user_id}",
            role=role,
            issued_at=self._clock(),
        )


def _path_matches(path: str, prefix: str) -> bool:
    trimmed = prefix.rstrip("/")
    if not trimmed:
        return False
    lowered = path.lower()
    trimmed = trimmed.lower()
    return lowered == trimmed or lowered.startswith(trimmed + "/")


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """Reject requests without a well-formed token.

    Paths under one of ``skip_paths`` (matched per path segment) pass through
    untouched. Successful requests carry the derived principal on
    ``request.state.principal``.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        parser: TokenParser | None = None,
        skip_paths: Iterable[str] = DEFAULT_SKIP_PATHS,
    ) -> None:
        super().__init__(app)
        self._parser = parser or TokenParser()
        self._skip_paths = tuple(skip_paths)

    def should_skip(self, path: str) -> bool:
        return any(_path_matches(path, prefix) for prefix in self._skip_paths)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if self.should_skip(request.url.path):
            return await call_next(request)

        try:
            token = extract_token(request)
            if not token:
                logger.warning(
                    "No authentication token provided for request: %s %s",
                    request.method,
                    request.url.path,
                )
                return self._unauthorized(request, "No authentication token provided")

            principal = self._parser.parse(token)
        except InvalidTokenError:
            logger.warning(
                "Invalid authentication token provided for request: %s %s",
                request.method,
                request.url.path,
            )
            return self._unauthorized(request, "Invalid authentication token")
        except Exception:
            logger.exception(
                "Error occurred during authentication for request: %s %s",
                request.method,
                request.url.path,
            )
            return self._unauthorized(request, "Authentication error occurred")

        request.state.principal = principal
        logger.info(
            "Authentication successful for request: %s %s - User: %s",
            request.method,
            request.url.path,
            principal.user_id,
        )
        return await call_next(request)

    @staticmethod
    def _unauthorized(request: Request, message: str) -> Response:
        return error_response(
            request,
            status.HTTP_401_UNAUTHORIZED,
            "Unauthorized",
            message,
            headers={"WWW-Authenticate": "Bearer"},
        )


def current_principal(request: Request) -> Principal:
    """FastAPI dependency returning the principal set by the middleware."""

    principal = getattr(request.state, "principal", None)
    if principal is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return principal


__all__ = [
    "API_KEY_HEADER",
    "AuthenticationMiddleware",
    "InvalidTokenError",
    "TokenParser",
    "current_principal",
    "extract_token",
]
