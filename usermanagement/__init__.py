"""Core utilities for the TechHive user management API."""

from __future__ import annotations

from typing import Any

from .models import Principal, Role, UserRecord
from .store import RecordStore
from .users import Outcome, OutcomeKind, UserService


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the ASGI application."""

    from .api import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "Outcome",
    "OutcomeKind",
    "Principal",
    "RecordStore",
    "Role",
    "UserRecord",
    "UserService",
    "create_app",
]
