"""Tests for validation, defaulting and bookkeeping in the user service."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest import mock

import pytest

from usermgmt.errors import ValidationError
from usermgmt.models import User
from usermgmt.repository import UserRepository
from usermgmt.service import UserService
from usermgmt.store import RecordStore


class SteppingClock:
    """Return a timestamp one second later on every call."""

    def __init__(self) -> None:
        self.current = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture()
def repository(tmp_path: Path) -> mock.Mock:
    store = RecordStore(tmp_path / "users.sqlite3")
    store.initialize()
    return mock.Mock(wraps=UserRepository(store))


@pytest.fixture()
def service(repository: mock.Mock) -> UserService:
    return UserService(repository, clock=SteppingClock())


def _john(**overrides: object) -> User:
    fields = {
        "uuid": "test-uuid-123",
        "name": "John Doe",
        "email": "john.doe@example.com",
        "age": 30,
        "department": "Engineering",
        "role": "Software Engineer",
        "phone_number": "+1234567890",
    }
    fields.update(overrides)
    return User(**fields)  # type: ignore[arg-type]


def test_create_user_stamps_timestamps_and_defaults_active(service: UserService, repository: mock.Mock) -> None:
    created = service.create_user(_john())

    assert created.created_at is not None
    assert created.created_at == created.updated_at
    assert created.is_active is True
    repository.save.assert_called_once()
    assert service.get_user("test-uuid-123") == created


def test_create_user_keeps_explicit_inactive_flag(service: UserService) -> None:
    created = service.create_user(_john(is_active=False))

    assert created.is_active is False


def test_create_user_generates_uuid_when_missing(service: UserService) -> None:
    created = service.create_user(_john(uuid=None))

    assert created.uuid
    assert service.get_user(created.uuid) is not None


def test_create_user_overrides_client_timestamps(service: UserService) -> None:
    stale = datetime(1999, 1, 1, tzinfo=timezone.utc)
    created = service.create_user(_john(created_at=stale, updated_at=stale))

    assert created.created_at != stale
    assert created.created_at == created.updated_at


@pytest.mark.parametrize(
    "overrides",
    [
        {"age": 17},
        {"age": None},
        {"name": ""},
        {"name": "   "},
        {"name": None},
        {"email": ""},
        {"email": None},
    ],
)
def test_create_user_rejects_invalid_input(
    service: UserService, repository: mock.Mock, overrides: dict
) -> None:
    with pytest.raises(ValidationError):
        service.create_user(_john(**overrides))

    repository.save.assert_not_called()


def test_create_user_rejects_missing_user(service: UserService, repository: mock.Mock) -> None:
    with pytest.raises(ValidationError):
        service.create_user(None)

    repository.save.assert_not_called()


def test_create_user_rejects_duplicate_email(service: UserService, repository: mock.Mock) -> None:
    service.create_user(_john())
    repository.save.reset_mock()

    with pytest.raises(ValidationError, match="already exists"):
        service.create_user(_john(uuid="other-uuid", name="Johnny"))

    repository.save.assert_not_called()
    assert service.count_users() == 1


def test_create_user_rejects_existing_uuid(service: UserService, repository: mock.Mock) -> None:
    original = service.create_user(_john())
    repository.save.reset_mock()

    with pytest.raises(ValidationError, match="UUID already exists"):
        service.create_user(_john(name="Impostor", email="other@example.com"))

    repository.save.assert_not_called()
    assert service.get_user("test-uuid-123") == original


@pytest.mark.parametrize("uuid", ["all", "health", "a/b"])
def test_create_user_rejects_unaddressable_uuid(repository: mock.Mock, uuid: str) -> None:
    service = UserService(repository, clock=SteppingClock(), reserved_ids={"all", "health"})

    with pytest.raises(ValidationError, match="not allowed"):
        service.create_user(_john(uuid=uuid))

    repository.save.assert_not_called()


def test_reserved_uuids_only_apply_when_configured(service: UserService) -> None:
    created = service.create_user(_john(uuid="all"))

    assert created.uuid == "all"


@pytest.mark.parametrize("uuid", ["", "  ", None])
def test_get_user_rejects_blank_uuid(service: UserService, repository: mock.Mock, uuid) -> None:
    with pytest.raises(ValidationError):
        service.get_user(uuid)

    repository.find_by_id.assert_not_called()


def test_get_user_returns_none_when_absent(service: UserService) -> None:
    assert service.get_user("non-existent") is None


def test_update_user_absent_returns_none_without_saving(service: UserService, repository: mock.Mock) -> None:
    assert service.update_user(_john(uuid="non-existent")) is None

    repository.find_by_id.assert_called_once_with("non-existent")
    repository.save.assert_not_called()


def test_update_user_requires_uuid(service: UserService, repository: mock.Mock) -> None:
    with pytest.raises(ValidationError):
        service.update_user(_john(uuid=""))
    with pytest.raises(ValidationError):
        service.update_user(None)

    repository.find_by_id.assert_not_called()


def test_update_user_preserves_created_at_and_advances_updated_at(service: UserService) -> None:
    created = service.create_user(_john())

    updated = service.update_user(
        _john(name="John Updated", department="Research", created_at=datetime(2000, 1, 1, tzinfo=timezone.utc))
    )

    assert updated is not None
    assert updated.name == "John Updated"
    assert updated.department == "Research"
    assert updated.created_at == created.created_at
    assert updated.updated_at is not None and created.updated_at is not None
    assert updated.updated_at > created.updated_at
    assert service.get_user("test-uuid-123") == updated


def test_update_user_preserves_active_flag_when_unset(service: UserService) -> None:
    service.create_user(_john(is_active=False))

    updated = service.update_user(_john(is_active=None))

    assert updated is not None
    assert updated.is_active is False


def test_update_user_applies_explicit_active_flag(service: UserService) -> None:
    service.create_user(_john())

    updated = service.update_user(_john(is_active=False))

    assert updated is not None
    assert updated.is_active is False


def test_update_user_does_not_recheck_email_uniqueness(service: UserService) -> None:
    service.create_user(_john())
    service.create_user(_john(uuid="second", email="second@example.com"))

    updated = service.update_user(_john(uuid="second"))

    assert updated is not None
    assert updated.email == "john.doe@example.com"


def test_delete_user_is_idempotent(service: UserService, repository: mock.Mock) -> None:
    service.create_user(_john())

    assert service.delete_user("test-uuid-123") is True
    repository.delete.assert_called_once_with("test-uuid-123")

    assert service.delete_user("test-uuid-123") is False
    repository.delete.assert_called_once()
    assert service.get_user("test-uuid-123") is None


def test_delete_user_rejects_blank_uuid(service: UserService) -> None:
    with pytest.raises(ValidationError):
        service.delete_user("")


def test_filters_require_value(service: UserService) -> None:
    with pytest.raises(ValidationError):
        service.get_users_by_department("")
    with pytest.raises(ValidationError):
        service.get_users_by_role(" ")
    with pytest.raises(ValidationError):
        service.search_users_by_name(None)
    with pytest.raises(ValidationError):
        service.get_user_by_email("")


def test_filters_match_exactly(service: UserService) -> None:
    service.create_user(_john())
    service.create_user(_john(uuid="u-2", email="jane@example.com", name="Jane", department="Sales", role="Manager"))

    assert [user.uuid for user in service.get_users_by_department("Engineering")] == ["test-uuid-123"]
    assert service.get_users_by_department("engineering") == []
    assert [user.uuid for user in service.get_users_by_role("Manager")] == ["u-2"]
    assert [user.uuid for user in service.search_users_by_name("jAnE")] == ["u-2"]
    found = service.get_user_by_email("jane@example.com")
    assert found is not None and found.uuid == "u-2"


def test_active_users_is_subset_of_all_users(service: UserService) -> None:
    service.create_user(_john())
    service.create_user(_john(uuid="u-2", email="two@example.com", is_active=False))
    service.create_user(_john(uuid="u-3", email="three@example.com"))
    service.deactivate_user("u-3")

    all_users = service.get_all_users()
    active = service.get_active_users()

    assert active == [user for user in all_users if user.is_active]
    assert [user.uuid for user in active] == ["test-uuid-123"]


def test_deactivate_then_activate_restores_flag(service: UserService) -> None:
    created = service.create_user(_john())

    deactivated = service.deactivate_user("test-uuid-123")
    assert deactivated is not None
    assert deactivated.is_active is False
    assert deactivated.updated_at > created.updated_at  # type: ignore[operator]

    activated = service.activate_user("test-uuid-123")
    assert activated is not None
    assert activated.is_active is True
    assert activated.updated_at > deactivated.updated_at  # type: ignore[operator]
    assert activated.created_at == created.created_at
    assert replace(activated, updated_at=None) == replace(created, updated_at=None)


def test_activation_of_absent_user_returns_none(service: UserService, repository: mock.Mock) -> None:
    assert service.activate_user("missing") is None
    assert service.deactivate_user("missing") is None

    repository.save.assert_not_called()
    with pytest.raises(ValidationError):
        service.deactivate_user("")
