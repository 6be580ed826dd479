"""Configuration management for the user management service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from datetime import date
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

import yaml

from .models import Role

DEFAULT_SKIP_PATHS: Tuple[str, ...] = (
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/swagger",
    "/favicon.ico",
)
DEFAULT_TOKEN_ROLES: Dict[str, Role] = {
    "techhive": Role.ADMIN,
    "api": Role.API,
    "user": Role.USER,
}
DEFAULT_MIN_TOKEN_LENGTH = 10

_DEVELOPMENT_NAMES = {"development", "dev", "local"}
_SEED_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "phone_number",
    "department",
    "position",
    "hire_date",
)


@dataclass(frozen=True)
class SeedUser:
    """A record inserted into the store when the service starts."""

    first_name: str
    last_name: str
    email: str
    phone_number: str
    department: str
    position: str
    hire_date: date

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "SeedUser":
        """Create a :class:`SeedUser` from raw dictionary data."""
        missing = [name for name in _SEED_FIELDS if name not in data]
        if missing:
            raise ValueError(f"Missing required seed user fields: {', '.join(missing)}")

        raw_hire_date = data["hire_date"]
        if isinstance(raw_hire_date, date):
            hire_date = raw_hire_date
        else:
            try:
                hire_date = date.fromisoformat(str(raw_hire_date))
            except ValueError as exc:
                raise ValueError(f"Invalid seed hire_date {raw_hire_date!r}") from exc

        return SeedUser(
            first_name=str(data["first_name"]),
            last_name=str(data["last_name"]),
            email=str(data["email"]),
            phone_number=str(data["phone_number"]),
            department=str(data["department"]),
            position=str(data["position"]),
            hire_date=hire_date,
        )


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the API and its middleware."""

    environment: str = "Production"
    version: str = "1.0.0"
    skip_paths: Tuple[str, ...] = DEFAULT_SKIP_PATHS
    token_roles: Mapping[str, Role] = field(default_factory=lambda: dict(DEFAULT_TOKEN_ROLES))
    min_token_length: int = DEFAULT_MIN_TOKEN_LENGTH
    email_reuse_after_delete: bool = True
    seed_users: Tuple[SeedUser, ...] = ()
    trusted_proxies: List[str] | str = "*"

    @property
    def is_development(self) -> bool:
        return self.environment.strip().lower() in _DEVELOPMENT_NAMES


def _env_flag(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _trusted_proxy_hosts(raw: Optional[str]) -> List[str] | str:
    if not raw:
        return "*"
    hosts = [item.strip() for item in raw.split(",") if item.strip()]
    return hosts or "*"


def _parse_token_roles(raw: object) -> Dict[str, Role]:
    if not isinstance(raw, Mapping) or not raw:
        raise ValueError("auth.token_roles must be a non-empty mapping of prefix to role")
    roles: Dict[str, Role] = {}
    for prefix, role_name in raw.items():
        cleaned = str(prefix).strip().rstrip("_").lower()
        if not cleaned:
            raise ValueError("Token prefixes must not be empty")
        try:
            roles[cleaned] = Role(str(role_name))
        except ValueError as exc:
            raise ValueError(f"Unknown role {role_name!r} for token prefix {prefix!r}") from exc
    return roles


def settings_from_dict(raw: Mapping[str, object]) -> Settings:
    """Build :class:`Settings` from the parsed YAML document."""
    auth = raw.get("auth") or {}
    users = raw.get("users") or {}
    if not isinstance(auth, Mapping) or not isinstance(users, Mapping):
        raise ValueError("The 'auth' and 'users' sections must be mappings")

    kwargs: Dict[str, object] = {}
    if "environment" in raw:
        kwargs["environment"] = str(raw["environment"])
    if "version" in raw:
        kwargs["version"] = str(raw["version"])
    if "skip_paths" in auth:
        kwargs["skip_paths"] = tuple(str(path) for path in auth["skip_paths"] or ())
    if "token_roles" in auth:
        kwargs["token_roles"] = _parse_token_roles(auth["token_roles"])
    if "min_token_length" in auth:
        kwargs["min_token_length"] = int(auth["min_token_length"])
    if "email_reuse_after_delete" in users:
        kwargs["email_reuse_after_delete"] = bool(users["email_reuse_after_delete"])
    seed_raw = users.get("seed") or []
    if not isinstance(seed_raw, list):
        raise ValueError("users.seed must be a list")
    kwargs["seed_users"] = tuple(SeedUser.from_dict(item) for item in seed_raw)

    return Settings(**kwargs)  # type: ignore[arg-type]


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """Load settings from a YAML file and apply environment overrides."""
    path = config_path if config_path is not None else resolve_config_path(os.getenv("USERMGMT_CONFIG"))

    raw: object = {}
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"Configuration file {path} must contain a mapping")

    settings = settings_from_dict(raw)

    overrides: Dict[str, object] = {}
    environment = os.getenv("USERMGMT_ENVIRONMENT")
    if environment:
        overrides["environment"] = environment.strip()
    reuse = os.getenv("USERMGMT_EMAIL_REUSE_AFTER_DELETE")
    if reuse is not None:
        overrides["email_reuse_after_delete"] = _env_flag(reuse, settings.email_reuse_after_delete)
    overrides["trusted_proxies"] = _trusted_proxy_hosts(os.getenv("USERMGMT_TRUSTED_PROXIES"))

    return replace(settings, **overrides)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "settings.yaml").resolve(strict=False)
    return candidate


__all__ = [
    "DEFAULT_SKIP_PATHS",
    "DEFAULT_TOKEN_ROLES",
    "SeedUser",
    "Settings",
    "load_settings",
    "resolve_config_path",
    "settings_from_dict",
]
