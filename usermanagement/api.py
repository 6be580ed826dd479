"""FastAPI application exposing the employee record endpoints."""
from __future__ import annotations

import logging
import os
import platform
import socket
import time
from datetime import date, datetime, timezone
from http import HTTPStatus
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from starlette.exceptions import HTTPException as StarletteHTTPException
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from .config import Settings, load_settings
from .errors import error_response
from .middleware import ErrorHandlingMiddleware, RequestLoggingMiddleware
from .models import Principal, UserRecord
from .security import AuthenticationMiddleware, TokenParser, current_principal
from .store import RecordStore
from .users import Outcome, OutcomeKind, UserService

logger = logging.getLogger("usermanagement.api")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _coerce_date(value: object) -> object:
    """Accept ISO dates and datetimes, keeping only the calendar date."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError as exc:
            raise ValueError("Hire date must be a valid date") from exc
    return value


class CreateUserRequest(_CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    hire_date: Optional[date] = None

    @field_validator("hire_date", mode="before")
    @classmethod
    def _normalise_hire_date(cls, value: object) -> object:
        return _coerce_date(value)


class UpdateUserRequest(CreateUserRequest):
    is_active: Optional[bool] = None


class UserResponse(_CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str
    phone_number: str
    department: str
    position: str
    hire_date: date
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None


class PrincipalResponse(_CamelModel):
    user_id: str
    name: str
    role: str
    token_type: str
    issued_at: datetime


class MessageResponse(BaseModel):
    message: str


def user_to_response(user: UserRecord) -> UserResponse:
    return UserResponse(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        phone_number=user.phone_number,
        department=user.department,
        position=user.position,
        hire_date=user.hire_date,
        is_active=user.is_active,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _raise_for_outcome(outcome: Outcome) -> None:
    if outcome.kind is OutcomeKind.SUCCESS:
        return
    if outcome.kind is OutcomeKind.NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=outcome.message)
    if outcome.kind is OutcomeKind.CONFLICT:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=outcome.message)
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={
            "error": "Validation failed",
            "message": "One or more validation errors occurred.",
            "errors": list(outcome.errors),
        },
    )


def _require_positive_id(user_id: int) -> None:
    if user_id <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User ID must be a positive integer",
        )


def _format_validation_error(error: Dict[str, object]) -> str:
    location = [str(part) for part in error.get("loc", ()) if part != "body"]
    message = str(error.get("msg", "Invalid value"))
    if location:
        return f"{'.'.join(location)}: {message}"
    return message


def create_app(
    *,
    settings: Settings | None = None,
    store: RecordStore | None = None,
    service: UserService | None = None,
) -> FastAPI:
    if settings is None:
        settings = load_settings()

    if service is None:
        store = store or RecordStore()
        service = UserService(store, email_reuse_after_delete=settings.email_reuse_after_delete)
        if settings.seed_users:
            loaded = service.load_seed(settings.seed_users)
            logger.info("Loaded %s seed user(s)", loaded)

    app = FastAPI(
        title="TechHive User Management API",
        description="CRUD API for employee records with token authentication",
        version=settings.version,
    )
    app.state.settings = settings
    app.state.service = service
    app.state.started_at = time.monotonic()

    logger.warning(
        "Token authentication is a placeholder: tokens are checked for shape only and are never"
        " signed, expired or revoked. Do not rely on it as a security boundary."
    )

    # Registered innermost first: each add_middleware call wraps the previous stack.
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        AuthenticationMiddleware,
        parser=TokenParser(settings.token_roles, min_length=settings.min_token_length),
        skip_paths=settings.skip_paths,
    )
    app.add_middleware(ErrorHandlingMiddleware, development=settings.is_development)
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=settings.trusted_proxies)

    def get_service() -> UserService:
        return service

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        try:
            error = HTTPStatus(exc.status_code).phrase
        except ValueError:
            error = "Error"
        errors = None
        detail = exc.detail
        if isinstance(detail, dict):
            error = str(detail.get("error", error))
            message = str(detail.get("message", ""))
            errors = detail.get("errors")
        else:
            message = str(detail)
        return error_response(
            request,
            exc.status_code,
            error,
            message,
            errors=errors,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        return error_response(
            request,
            status.HTTP_400_BAD_REQUEST,
            "Validation failed",
            "The request could not be parsed.",
            errors=[_format_validation_error(error) for error in exc.errors()],
        )

    def _uptime_seconds() -> float:
        return round(time.monotonic() - app.state.started_at, 3)

    def _health_payload() -> Dict[str, object]:
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": settings.version,
            "environment": settings.environment,
            "uptime": _uptime_seconds(),
        }

    @app.get("/health")
    async def healthcheck() -> Dict[str, object]:
        logger.info("Health check requested")
        return _health_payload()

    @app.get("/health/detailed")
    async def detailed_healthcheck(svc: UserService = Depends(get_service)) -> Dict[str, object]:
        logger.info("Detailed health check requested")
        payload = _health_payload()
        payload["system"] = {
            "os": platform.platform(),
            "pythonVersion": platform.python_version(),
            "processorCount": os.cpu_count(),
            "processId": os.getpid(),
            "machineName": socket.gethostname(),
        }
        payload["services"] = {
            "userService": "operational",
            "recordStore": "operational",
            "activeUsers": len(svc.list_active()),
        }
        return payload

    router = APIRouter(prefix="/api")

    @router.get("/me", response_model=PrincipalResponse)
    async def read_current_principal(principal: Principal = Depends(current_principal)) -> PrincipalResponse:
        return PrincipalResponse(
            user_id=principal.user_id,
            name=principal.name,
            role=principal.role.value,
            token_type=principal.token_type,
            issued_at=principal.issued_at,
        )

    @router.get("/users", response_model=List[UserResponse])
    async def list_users(svc: UserService = Depends(get_service)) -> List[UserResponse]:
        return [user_to_response(user) for user in svc.list_active()]

    @router.get("/users/department/{department}", response_model=List[UserResponse])
    async def list_users_by_department(
        department: str,
        svc: UserService = Depends(get_service),
    ) -> List[UserResponse]:
        if not department.strip():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Department name cannot be empty",
            )
        return [user_to_response(user) for user in svc.get_by_department(department)]

    @router.get("/users/email/{email}", response_model=UserResponse)
    async def read_user_by_email(email: str, svc: UserService = Depends(get_service)) -> UserResponse:
        if not email.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email cannot be empty")
        outcome = svc.get_by_email(email)
        _raise_for_outcome(outcome)
        return user_to_response(outcome.value)

    @router.get("/users/{user_id}", response_model=UserResponse, name="read_user")
    async def read_user(user_id: int, svc: UserService = Depends(get_service)) -> UserResponse:
        _require_positive_id(user_id)
        outcome = svc.get_by_id(user_id)
        _raise_for_outcome(outcome)
        return user_to_response(outcome.value)

    @router.post(
        "/users",
        response_model=UserResponse,
        status_code=status.HTTP_201_CREATED,
    )
    async def create_user(
        payload: CreateUserRequest,
        request: Request,
        response: Response,
        svc: UserService = Depends(get_service),
    ) -> UserResponse:
        outcome = svc.create(payload.model_dump())
        _raise_for_outcome(outcome)
        created = outcome.value
        response.headers["Location"] = str(request.url_for("read_user", user_id=created.id))
        return user_to_response(created)

    @router.put("/users/{user_id}", response_model=UserResponse)
    async def update_user(
        user_id: int,
        payload: UpdateUserRequest,
        svc: UserService = Depends(get_service),
    ) -> UserResponse:
        _require_positive_id(user_id)
        outcome = svc.update(user_id, payload.model_dump(exclude_unset=True))
        _raise_for_outcome(outcome)
        return user_to_response(outcome.value)

    @router.delete("/users/{user_id}", response_model=MessageResponse)
    async def delete_user(user_id: int, svc: UserService = Depends(get_service)) -> MessageResponse:
        _require_positive_id(user_id)
        outcome = svc.soft_delete(user_id)
        _raise_for_outcome(outcome)
        return MessageResponse(message=f"User with ID {user_id} has been deleted successfully.")

    app.include_router(router)

    return app


__all__ = ["create_app", "user_to_response"]
