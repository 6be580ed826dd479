"""Domain models for the user management service."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional


@dataclass
class UserRecord:
    """Represents an employee record held by the record store."""

    id: int
    first_name: str
    last_name: str
    email: str
    phone_number: str
    department: str
    position: str
    hire_date: date
    is_active: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None


class Role(str, Enum):
    """Role labels derived from the prefix of an access token."""

    ADMIN = "Admin"
    API = "API"
    USER = "User"


@dataclass(frozen=True)
class Principal:
    """Identity attached to an authenticated request."""

    user_id: str
    name: str
    role: Role
    issued_at: datetime
    token_type: str = "Bearer"


__all__ = ["Principal", "Role", "UserRecord"]
