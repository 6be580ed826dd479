from __future__ import annotations

from datetime import date, datetime

import pytest

from usermanagement.validation import FieldRule, build_user_rules, validate

TODAY = date(2025, 3, 14)


@pytest.fixture()
def rules():
    return build_user_rules(lambda: TODAY)


def _valid_input(**overrides):
    values = {
        "first_name": "Sarah",
        "last_name": "O'Neil-Wilson",
        "email": "sarah.wilson@techhive.com",
        "phone_number": "+1 (555) 010-6000",
        "department": "Research & Development",
        "position": "Financial Analyst",
        "hire_date": date(2024, 2, 1),
    }
    values.update(overrides)
    return values


def test_valid_input_has_no_errors(rules) -> None:
    assert validate(_valid_input(), rules) == []


def test_missing_fields_report_required_messages(rules) -> None:
    errors = validate({}, rules)

    assert errors == [
        "First name is required",
        "Last name is required",
        "Email is required",
        "Phone number is required",
        "Department is required",
        "Position is required",
        "Hire date is required",
    ]


def test_failed_required_rule_stops_other_checks_for_field(rules) -> None:
    errors = validate(_valid_input(first_name="   "), rules)

    assert errors == ["First name is required"]


@pytest.mark.parametrize(
    ("field", "value", "message"),
    [
        ("first_name", "S", "First name must be between 2 and 50 characters"),
        ("first_name", "Sarah2", "First name can only contain letters, spaces, hyphens, and apostrophes"),
        ("last_name", "x" * 51, "Last name must be between 2 and 50 characters"),
        ("email", "not-an-email", "Invalid email format"),
        ("email", "sarah@localhost", "Invalid email format"),
        ("email", ("a" * 95) + "@x.com", "Email cannot exceed 100 characters"),
        ("phone_number", "12345", "Phone number must be between 7 and 20 characters"),
        ("phone_number", "555-CALL-NOW", "Invalid phone number format"),
        ("department", "R&D 2", "Department can only contain letters, spaces, hyphens, and ampersands"),
        ("position", "Dev's Lead", "Position can only contain letters, spaces, hyphens, and ampersands"),
    ],
)
def test_field_constraints(rules, field, value, message) -> None:
    assert message in validate(_valid_input(**{field: value}), rules)


def test_email_format_message_is_reported_once(rules) -> None:
    errors = validate(_valid_input(email="two@@example.com"), rules)

    assert errors.count("Invalid email format") == 1


def test_hire_date_today_is_accepted(rules) -> None:
    assert validate(_valid_input(hire_date=TODAY), rules) == []


def test_hire_date_in_future_is_rejected_regardless_of_time(rules) -> None:
    tomorrow_early = datetime(2025, 3, 15, 0, 0, 1)
    today_late = datetime(2025, 3, 14, 23, 59, 59)

    assert validate(_valid_input(hire_date=tomorrow_early), rules) == ["Hire date cannot be in the future"]
    assert validate(_valid_input(hire_date=today_late), rules) == []


def test_partial_validation_skips_absent_fields(rules) -> None:
    assert validate({}, rules, partial=True) == []
    assert validate({"department": "IT"}, rules, partial=True) == []
    assert validate({"first_name": ""}, rules, partial=True) == [
        "First name must be between 2 and 50 characters",
        "First name can only contain letters, spaces, hyphens, and apostrophes",
    ]


def test_custom_rules_are_evaluated_generically() -> None:
    rule = FieldRule("nickname", lambda value: value != "root", "Nickname is reserved")

    assert validate({"nickname": "root"}, [rule]) == ["Nickname is reserved"]
    assert validate({"nickname": "ada"}, [rule]) == []
    assert validate({}, [rule]) == []
