"""Business logic for managing employee records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Callable, Dict, Generic, Iterable, List, Mapping, Optional, Tuple, TypeVar

from .config import SeedUser
from .models import UserRecord
from .store import RecordStore
from .validation import FIELD_NAMES, build_field_rules, build_hire_date_rules, validate

logger = logging.getLogger("usermanagement.users")

T = TypeVar("T")

_UPDATABLE_FIELDS = frozenset(FIELD_NAMES) | {"is_active"}


class OutcomeKind(str, Enum):
    """Expected results of a record service call."""

    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Tagged result returned by :class:`UserService` operations."""

    kind: OutcomeKind
    value: Optional[T] = None
    errors: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @property
    def message(self) -> str:
        return self.errors[0] if self.errors else ""

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(OutcomeKind.SUCCESS, value=value)

    @classmethod
    def invalid(cls, errors: Iterable[str]) -> "Outcome[T]":
        return cls(OutcomeKind.VALIDATION_ERROR, errors=tuple(errors))

    @classmethod
    def conflict(cls, message: str) -> "Outcome[T]":
        return cls(OutcomeKind.CONFLICT, errors=(message,))

    @classmethod
    def not_found(cls, message: str) -> "Outcome[T]":
        return cls(OutcomeKind.NOT_FOUND, errors=(message,))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _sanitize(values: Mapping[str, object]) -> Dict[str, object]:
    cleaned: Dict[str, object] = {}
    for key, value in values.items():
        if isinstance(value, str):
            value = value.strip()
            if key == "email":
                value = value.lower()
        cleaned[key] = value
    return cleaned


def _as_date(value: object) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Expected a date, got {type(value).__name__}")


class UserService:
    """Validates input and applies mutations to a :class:`RecordStore`.

    Every operation that checks and then writes holds the store lock for the
    whole sequence, so two concurrent creates with the same email can never
    both succeed. Results are returned as :class:`Outcome` values; only
    unexpected failures raise.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        email_reuse_after_delete: bool = True,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._email_reuse_after_delete = email_reuse_after_delete
        self._clock = clock or _utcnow
        self._field_rules = build_field_rules()
        self._hire_date_rules = build_hire_date_rules(self._today)

    @property
    def store(self) -> RecordStore:
        return self._store

    def _today(self) -> date:
        return self._clock().date()

    @staticmethod
    def _snapshot(record: UserRecord) -> UserRecord:
        return replace(record)

    def _email_owner(
        self,
        store: RecordStore,
        email: str,
        *,
        exclude_id: Optional[int] = None,
    ) -> Optional[UserRecord]:
        return store.find(
            lambda record: record.email.lower() == email and record.id != exclude_id,
            include_inactive=not self._email_reuse_after_delete,
        )

    def list_active(self) -> List[UserRecord]:
        records = [self._snapshot(record) for record in self._store.list()]
        logger.info("Retrieved %s active users", len(records))
        return records

    def get_by_id(self, user_id: int) -> Outcome[UserRecord]:
        if user_id <= 0:
            logger.warning("Invalid user ID provided: %s", user_id)
            return Outcome.not_found(f"User with ID {user_id} not found.")

        record = self._store.get_by_id(user_id)
        if record is None:
            logger.warning("User with ID %s not found", user_id)
            return Outcome.not_found(f"User with ID {user_id} not found.")
        return Outcome.success(self._snapshot(record))

    def get_by_email(self, email: str) -> Outcome[UserRecord]:
        cleaned = (email or "").strip().lower()
        if not cleaned:
            logger.warning("Empty email provided for search")
            return Outcome.not_found("Email cannot be empty")

        record = self._store.find(lambda candidate: candidate.email.lower() == cleaned)
        if record is None:
            logger.warning("User with email %s not found", cleaned)
            return Outcome.not_found(f"User with email {cleaned} not found.")
        return Outcome.success(self._snapshot(record))

    def get_by_department(self, department: str) -> List[UserRecord]:
        cleaned = (department or "").strip().lower()
        if not cleaned:
            logger.warning("Empty department provided for search")
            return []

        records = [
            self._snapshot(record)
            for record in self._store.list()
            if record.department.lower() == cleaned
        ]
        logger.info("Retrieved %s users from department %s", len(records), cleaned)
        return records

    def create(self, data: Mapping[str, object]) -> Outcome[UserRecord]:
        values = _sanitize({name: data.get(name) for name in FIELD_NAMES})

        date_errors = validate(values, self._hire_date_rules)
        errors = validate(values, self._field_rules)
        if errors:
            errors.extend(message for message in date_errors if message not in errors)
            logger.warning("Rejected user creation for %s: %s", values.get("email"), "; ".join(errors))
            return Outcome.invalid(errors)

        email = str(values["email"])
        with self._store.locked() as store:
            # Duplicate email wins over a future hire date.
            if self._email_owner(store, email) is not None:
                logger.warning("Attempt to create user with existing email: %s", email)
                return Outcome.conflict(f"User with email {email} already exists.")
            if date_errors:
                logger.warning("Rejected user creation for %s: %s", email, "; ".join(date_errors))
                return Outcome.invalid(date_errors)

            record = store.insert(
                UserRecord(
                    id=0,
                    first_name=str(values["first_name"]),
                    last_name=str(values["last_name"]),
                    email=email,
                    phone_number=str(values["phone_number"]),
                    department=str(values["department"]),
                    position=str(values["position"]),
                    hire_date=_as_date(values["hire_date"]),
                    is_active=True,
                    created_at=self._clock(),
                    updated_at=None,
                )
            )
            created = self._snapshot(record)

        logger.info("User created successfully with ID: %s", created.id)
        return Outcome.success(created)

    def update(self, user_id: int, changes: Mapping[str, object]) -> Outcome[UserRecord]:
        if user_id <= 0:
            logger.warning("Invalid user ID provided for update: %s", user_id)
            return Outcome.not_found(f"User with ID {user_id} not found.")

        present = _sanitize(
            {key: value for key, value in changes.items() if key in _UPDATABLE_FIELDS and value is not None}
        )

        date_errors = validate(present, self._hire_date_rules, partial=True)
        errors = validate(present, self._field_rules, partial=True)
        if errors:
            errors.extend(message for message in date_errors if message not in errors)
            logger.warning("Rejected update for user %s: %s", user_id, "; ".join(errors))
            return Outcome.invalid(errors)

        with self._store.locked() as store:
            record = store.get_by_id(user_id)
            if record is None:
                logger.warning("User with ID %s not found for update", user_id)
                return Outcome.not_found(f"User with ID {user_id} not found.")

            email = present.get("email")
            if isinstance(email, str) and email != record.email.lower():
                if self._email_owner(store, email, exclude_id=record.id) is not None:
                    logger.warning("Attempt to update user with existing email: %s", email)
                    return Outcome.conflict(f"User with email {email} already exists.")

            if date_errors:
                logger.warning("Rejected update for user %s: %s", user_id, "; ".join(date_errors))
                return Outcome.invalid(date_errors)

            for key, value in present.items():
                if key == "hire_date":
                    value = _as_date(value)
                elif key == "is_active":
                    value = bool(value)
                setattr(record, key, value)
            record.updated_at = self._clock()
            updated = self._snapshot(record)

        logger.info("User with ID %s updated successfully", user_id)
        return Outcome.success(updated)

    def soft_delete(self, user_id: int) -> Outcome[UserRecord]:
        if user_id <= 0:
            logger.warning("Invalid user ID provided for deletion: %s", user_id)
            return Outcome.not_found(f"User with ID {user_id} not found.")

        with self._store.locked() as store:
            record = store.get_by_id(user_id)
            if record is None:
                logger.warning("User with ID %s not found for deletion", user_id)
                return Outcome.not_found(f"User with ID {user_id} not found.")

            record.is_active = False
            record.updated_at = self._clock()
            deleted = self._snapshot(record)

        logger.info("User with ID %s deleted successfully", user_id)
        return Outcome.success(deleted)

    def load_seed(self, seed_users: Iterable[SeedUser]) -> int:
        """Insert the configured seed users, returning how many were stored."""

        loaded = 0
        for seed in seed_users:
            outcome = self.create(
                {
                    "first_name": seed.first_name,
                    "last_name": seed.last_name,
                    "email": seed.email,
                    "phone_number": seed.phone_number,
                    "department": seed.department,
                    "position": seed.position,
                    "hire_date": seed.hire_date,
                }
            )
            if outcome.ok:
                loaded += 1
            else:
                logger.warning("Skipping seed user %s: %s", seed.email, "; ".join(outcome.errors))
        return loaded


__all__ = ["Outcome", "OutcomeKind", "UserService"]
