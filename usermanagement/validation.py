"""Declarative field validation for user record input."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Iterable, List, Mapping, Optional, Tuple

_NAME_PATTERN = re.compile(r"^[a-zA-Z\s\-']+$")
_ORG_UNIT_PATTERN = re.compile(r"^[a-zA-Z\s\-&]+$")
_PHONE_PATTERN = re.compile(r"^[\+]?[0-9\s\-\(\)]+$")
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

FIELD_NAMES: Tuple[str, ...] = (
    "first_name",
    "last_name",
    "email",
    "phone_number",
    "department",
    "position",
    "hire_date",
)


@dataclass(frozen=True)
class FieldRule:
    """A single constraint on one input field.

    ``check`` receives the field value and returns ``True`` when the value is
    acceptable. Rules flagged ``required`` are the only ones evaluated for
    missing values; all other rules are skipped when the field is absent.
    """

    field: str
    check: Callable[[object], bool]
    message: str
    required: bool = False


def required(field: str, message: str) -> FieldRule:
    def check(value: object) -> bool:
        if value is None:
            return False
        if isinstance(value, str):
            return bool(value.strip())
        return True

    return FieldRule(field, check, message, required=True)


def length(field: str, message: str, *, minimum: int = 0, maximum: int) -> FieldRule:
    def check(value: object) -> bool:
        return isinstance(value, str) and minimum <= len(value) <= maximum

    return FieldRule(field, check, message)


def pattern(field: str, regex: "re.Pattern[str]", message: str) -> FieldRule:
    def check(value: object) -> bool:
        return isinstance(value, str) and regex.fullmatch(value) is not None

    return FieldRule(field, check, message)


def _looks_like_email(value: object) -> bool:
    if not isinstance(value, str):
        return False
    if value.count("@") != 1:
        return False
    return not value.startswith("@") and not value.endswith("@")


def _as_date(value: object) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return None


def not_in_future(field: str, message: str, today: Callable[[], date]) -> FieldRule:
    """Reject dates strictly after ``today()``; the time of day is ignored."""

    def check(value: object) -> bool:
        candidate = _as_date(value)
        if candidate is None:
            return False
        return candidate <= today()

    return FieldRule(field, check, message)


def build_field_rules() -> Tuple[FieldRule, ...]:
    """Return the presence, length and format rules for user payloads."""

    return (
        required("first_name", "First name is required"),
        length("first_name", "First name must be between 2 and 50 characters", minimum=2, maximum=50),
        pattern(
            "first_name",
            _NAME_PATTERN,
            "First name can only contain letters, spaces, hyphens, and apostrophes",
        ),
        required("last_name", "Last name is required"),
        length("last_name", "Last name must be between 2 and 50 characters", minimum=2, maximum=50),
        pattern(
            "last_name",
            _NAME_PATTERN,
            "Last name can only contain letters, spaces, hyphens, and apostrophes",
        ),
        required("email", "Email is required"),
        FieldRule("email", _looks_like_email, "Invalid email format"),
        length("email", "Email cannot exceed 100 characters", maximum=100),
        pattern("email", _EMAIL_PATTERN, "Invalid email format"),
        required("phone_number", "Phone number is required"),
        length(
            "phone_number",
            "Phone number must be between 7 and 20 characters",
            minimum=7,
            maximum=20,
        ),
        pattern("phone_number", _PHONE_PATTERN, "Invalid phone number format"),
        required("department", "Department is required"),
        length("department", "Department must be between 2 and 100 characters", minimum=2, maximum=100),
        pattern(
            "department",
            _ORG_UNIT_PATTERN,
            "Department can only contain letters, spaces, hyphens, and ampersands",
        ),
        required("position", "Position is required"),
        length("position", "Position must be between 2 and 50 characters", minimum=2, maximum=50),
        pattern(
            "position",
            _ORG_UNIT_PATTERN,
            "Position can only contain letters, spaces, hyphens, and ampersands",
        ),
        required("hire_date", "Hire date is required"),
    )


def build_hire_date_rules(today: Callable[[], date] = date.today) -> Tuple[FieldRule, ...]:
    return (not_in_future("hire_date", "Hire date cannot be in the future", today),)


def build_user_rules(today: Callable[[], date] = date.today) -> Tuple[FieldRule, ...]:
    """Return the full rule set applied to user create and update payloads."""

    return build_field_rules() + build_hire_date_rules(today)


def validate(
    values: Mapping[str, object],
    rules: Iterable[FieldRule],
    *,
    partial: bool = False,
) -> List[str]:
    """Evaluate ``rules`` against ``values`` and collect failure messages.

    In partial mode (updates) required rules are skipped and absent or
    ``None`` fields are not checked at all. Once a field fails its required
    rule no further rules run for it. Duplicate messages are reported once.
    """

    errors: List[str] = []
    failed_required: set[str] = set()
    for rule in rules:
        value = values.get(rule.field)
        if value is None and partial:
            continue
        if rule.required:
            if not partial and not rule.check(value):
                failed_required.add(rule.field)
                if rule.message not in errors:
                    errors.append(rule.message)
            continue
        if rule.field in failed_required or value is None:
            continue
        if not rule.check(value) and rule.message not in errors:
            errors.append(rule.message)
    return errors


__all__ = [
    "FIELD_NAMES",
    "FieldRule",
    "build_field_rules",
    "build_hire_date_rules",
    "build_user_rules",
    "length",
    "not_in_future",
    "pattern",
    "required",
    "validate",
]
