"""Tests for the record service business rules."""

from __future__ import annotations

import threading
from datetime import date, datetime, timedelta, timezone

import pytest

from usermanagement.config import SeedUser
from usermanagement.store import RecordStore
from usermanagement.users import OutcomeKind, UserService


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc))


@pytest.fixture()
def service(clock: FakeClock) -> UserService:
    return UserService(RecordStore(), clock=clock)


def _payload(**overrides):
    data = {
        "first_name": "Sarah",
        "last_name": "Wilson",
        "email": "sarah.wilson@techhive.com",
        "phone_number": "555-0106",
        "department": "Finance",
        "position": "Financial Analyst",
        "hire_date": date(2024, 2, 1),
    }
    data.update(overrides)
    return data


def test_create_sanitizes_and_stamps_record(service: UserService, clock: FakeClock) -> None:
    outcome = service.create(
        _payload(first_name="  Sarah ", email="  Sarah.Wilson@TechHive.com ", department=" Finance")
    )

    assert outcome.kind is OutcomeKind.SUCCESS
    user = outcome.value
    assert user.id == 1
    assert user.first_name == "Sarah"
    assert user.email == "sarah.wilson@techhive.com"
    assert user.department == "Finance"
    assert user.is_active is True
    assert user.created_at == clock.now
    assert user.updated_at is None


def test_identifiers_strictly_increase(service: UserService) -> None:
    ids = []
    for index in range(5):
        outcome = service.create(_payload(email=f"user{index}@techhive.com"))
        assert outcome.ok
        ids.append(outcome.value.id)

    assert ids == sorted(ids)
    assert len(set(ids)) == len(ids)


def test_identifiers_are_not_reused_after_delete(service: UserService) -> None:
    first = service.create(_payload(email="first@techhive.com")).value
    assert service.soft_delete(first.id).ok

    second = service.create(_payload(email="second@techhive.com")).value
    assert second.id > first.id


def test_duplicate_email_differing_only_by_case_conflicts(service: UserService) -> None:
    assert service.create(_payload(email="dup@techhive.com")).ok

    outcome = service.create(_payload(email="DUP@TechHive.com"))

    assert outcome.kind is OutcomeKind.CONFLICT
    assert outcome.message == "User with email dup@techhive.com already exists."


def test_invalid_input_is_rejected_without_creating(service: UserService) -> None:
    outcome = service.create(_payload(first_name="", phone_number="abc"))

    assert outcome.kind is OutcomeKind.VALIDATION_ERROR
    assert "First name is required" in outcome.errors
    assert "Invalid phone number format" in outcome.errors
    assert service.list_active() == []


def test_future_hire_date_is_rejected_on_create(service: UserService, clock: FakeClock) -> None:
    tomorrow = clock.now.date() + timedelta(days=1)

    outcome = service.create(_payload(hire_date=datetime.combine(tomorrow, datetime.min.time())))

    assert outcome.kind is OutcomeKind.VALIDATION_ERROR
    assert outcome.errors == ("Hire date cannot be in the future",)


def test_hire_date_today_with_late_time_is_accepted(service: UserService, clock: FakeClock) -> None:
    late_today = datetime.combine(clock.now.date(), datetime.max.time())

    outcome = service.create(_payload(hire_date=late_today))

    assert outcome.ok
    assert outcome.value.hire_date == clock.now.date()


def test_get_by_id_rejects_non_positive_and_unknown(service: UserService) -> None:
    assert service.get_by_id(0).kind is OutcomeKind.NOT_FOUND
    assert service.get_by_id(-3).kind is OutcomeKind.NOT_FOUND
    assert service.get_by_id(42).kind is OutcomeKind.NOT_FOUND


def test_get_by_email_is_case_insensitive(service: UserService) -> None:
    created = service.create(_payload()).value

    outcome = service.get_by_email("  SARAH.WILSON@techhive.com ")

    assert outcome.ok
    assert outcome.value.id == created.id
    assert service.get_by_email("   ").kind is OutcomeKind.NOT_FOUND
    assert service.get_by_email("nobody@techhive.com").kind is OutcomeKind.NOT_FOUND


def test_get_by_department_matches_exactly_ignoring_case(service: UserService) -> None:
    service.create(_payload(email="a@techhive.com", department="Finance"))
    service.create(_payload(email="b@techhive.com", department="Finance Ops"))
    service.create(_payload(email="c@techhive.com", department="FINANCE"))

    found = service.get_by_department(" finance ")

    assert [user.email for user in found] == ["a@techhive.com", "c@techhive.com"]
    assert service.get_by_department("") == []


def test_update_overwrites_only_present_fields(service: UserService, clock: FakeClock) -> None:
    created = service.create(_payload()).value
    clock.advance(hours=1)

    outcome = service.update(created.id, {"position": "  Senior Analyst ", "last_name": None})

    assert outcome.ok
    updated = outcome.value
    assert updated.position == "Senior Analyst"
    assert updated.last_name == "Wilson"
    assert updated.updated_at == clock.now


def test_empty_update_only_touches_updated_at(service: UserService, clock: FakeClock) -> None:
    created = service.create(_payload()).value
    clock.advance(minutes=5)

    outcome = service.update(created.id, {})

    assert outcome.ok
    updated = outcome.value
    assert updated.updated_at == clock.now
    assert updated.updated_at != created.updated_at
    for field in ("id", "first_name", "last_name", "email", "phone_number", "department",
                  "position", "hire_date", "is_active", "created_at"):
        assert getattr(updated, field) == getattr(created, field)


def test_update_rejects_future_hire_date(service: UserService, clock: FakeClock) -> None:
    created = service.create(_payload()).value

    outcome = service.update(created.id, {"hire_date": clock.now.date() + timedelta(days=1)})

    assert outcome.kind is OutcomeKind.VALIDATION_ERROR
    assert service.get_by_id(created.id).value.hire_date == date(2024, 2, 1)


def test_update_email_conflict_and_self_email(service: UserService) -> None:
    first = service.create(_payload(email="first@techhive.com")).value
    service.create(_payload(email="second@techhive.com"))

    conflict = service.update(first.id, {"email": "SECOND@techhive.com"})
    assert conflict.kind is OutcomeKind.CONFLICT

    same = service.update(first.id, {"email": "First@TechHive.com"})
    assert same.ok
    assert same.value.email == "first@techhive.com"


def test_update_unknown_or_invalid_id(service: UserService) -> None:
    assert service.update(0, {}).kind is OutcomeKind.NOT_FOUND
    assert service.update(99, {"position": "Lead"}).kind is OutcomeKind.NOT_FOUND


def test_soft_delete_hides_record_from_every_query(service: UserService, clock: FakeClock) -> None:
    created = service.create(_payload()).value
    clock.advance(seconds=30)

    deleted = service.soft_delete(created.id)

    assert deleted.ok
    assert deleted.value.is_active is False
    assert deleted.value.updated_at == clock.now
    assert service.get_by_id(created.id).kind is OutcomeKind.NOT_FOUND
    assert service.get_by_email(created.email).kind is OutcomeKind.NOT_FOUND
    assert service.get_by_department(created.department) == []
    assert service.list_active() == []
    assert service.soft_delete(created.id).kind is OutcomeKind.NOT_FOUND
    assert len(service.store) == 1


def test_deleted_email_can_be_reused_by_default(service: UserService) -> None:
    created = service.create(_payload()).value
    service.soft_delete(created.id)

    assert service.create(_payload()).ok


def test_deleted_email_blocks_reuse_when_configured(clock: FakeClock) -> None:
    service = UserService(RecordStore(), email_reuse_after_delete=False, clock=clock)
    created = service.create(_payload()).value
    service.soft_delete(created.id)

    assert service.create(_payload()).kind is OutcomeKind.CONFLICT


def test_returned_records_are_snapshots(service: UserService) -> None:
    created = service.create(_payload()).value
    created.first_name = "Mallory"

    assert service.get_by_id(created.id).value.first_name == "Sarah"


def test_concurrent_creates_with_same_email_allow_exactly_one(service: UserService) -> None:
    workers = 16
    barrier = threading.Barrier(workers)
    results = []
    results_lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        outcome = service.create(_payload(email="race@techhive.com"))
        with results_lock:
            results.append(outcome.kind)

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(OutcomeKind.SUCCESS) == 1
    assert results.count(OutcomeKind.CONFLICT) == workers - 1
    assert len(service.list_active()) == 1


def test_load_seed_skips_invalid_entries(service: UserService) -> None:
    seeds = [
        SeedUser("John", "Doe", "john.doe@techhive.com", "555-0101", "IT", "Software Developer", date(2023, 1, 15)),
        SeedUser("Jane", "Smith", "JOHN.DOE@techhive.com", "555-0102", "HR", "HR Manager", date(2022, 6, 20)),
    ]

    assert service.load_seed(seeds) == 1
    assert [user.email for user in service.list_active()] == ["john.doe@techhive.com"]


def test_duplicate_email_is_reported_before_future_hire_date(service: UserService, clock: FakeClock) -> None:
    assert service.create(_payload()).ok
    next_week = clock.now.date() + timedelta(days=7)

    outcome = service.create(_payload(hire_date=next_week))

    assert outcome.kind is OutcomeKind.CONFLICT
    assert outcome.message == "User with email sarah.wilson@techhive.com already exists."


def test_update_reports_conflict_before_future_hire_date(service: UserService, clock: FakeClock) -> None:
    first = service.create(_payload(email="first@techhive.com")).value
    service.create(_payload(email="second@techhive.com"))

    outcome = service.update(
        first.id,
        {"email": "second@techhive.com", "hire_date": clock.now.date() + timedelta(days=1)},
    )

    assert outcome.kind is OutcomeKind.CONFLICT


def test_field_errors_and_future_hire_date_are_reported_together(service: UserService, clock: FakeClock) -> None:
    assert service.create(_payload()).ok

    outcome = service.create(_payload(first_name="S", hire_date=clock.now.date() + timedelta(days=1)))

    assert outcome.kind is OutcomeKind.VALIDATION_ERROR
    assert outcome.errors == (
        "First name must be between 2 and 50 characters",
        "Hire date cannot be in the future",
    )
