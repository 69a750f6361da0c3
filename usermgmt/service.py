"""Business rules for managing user records."""
from __future__ import annotations

import logging
import uuid as uuid_module
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from .errors import ValidationError
from .models import User
from .repository import UserRepository

logger = logging.getLogger("usermgmt.service")

MINIMUM_AGE = 18

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def _require(value: Optional[str], message: str) -> str:
    if _is_blank(value):
        logger.debug("Rejected request: %s", message)
        raise ValidationError(message)
    return value  # type: ignore[return-value]


class UserService:
    """Validate, default and timestamp user records around repository calls.

    None of the read-then-write operations are atomic: two callers working on
    the same uuid (or creating users with the same email) can interleave.

    ``reserved_ids`` lists uuids a client may not choose on create, such as
    path segments the HTTP routes already claim.
    """

    def __init__(
        self,
        repository: UserRepository,
        *,
        clock: Clock | None = None,
        reserved_ids: Iterable[str] = (),
    ) -> None:
        self._repository = repository
        self._clock = clock or _utcnow
        self._reserved_ids = frozenset(reserved_ids)

    @property
    def repository(self) -> UserRepository:
        return self._repository

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------
    def create_user(self, user: Optional[User]) -> User:
        user = self._validate_for_creation(user)

        now = self._clock()
        record = replace(
            user,
            uuid=user.uuid if not _is_blank(user.uuid) else str(uuid_module.uuid4()),
            created_at=now,
            updated_at=now,
            is_active=True if user.is_active is None else user.is_active,
        )
        saved = self._repository.save(record)
        logger.info("Created user %s <%s>", saved.uuid, saved.email)
        return saved

    def get_user(self, uuid: Optional[str]) -> Optional[User]:
        key = _require(uuid, "User UUID cannot be null or empty")
        return self._repository.find_by_id(key)

    def update_user(self, user: Optional[User]) -> Optional[User]:
        if user is None:
            raise ValidationError("User cannot be null")
        uuid = _require(user.uuid, "User UUID is required for update operation")

        existing = self._repository.find_by_id(uuid)
        if existing is None:
            return None

        merged = replace(
            user,
            created_at=existing.created_at,
            updated_at=self._clock(),
            is_active=existing.is_active if user.is_active is None else user.is_active,
        )
        saved = self._repository.save(merged)
        logger.info("Updated user %s", uuid)
        return saved

    def delete_user(self, uuid: Optional[str]) -> bool:
        key = _require(uuid, "User UUID cannot be null or empty")
        if self._repository.find_by_id(key) is None:
            return False
        self._repository.delete(key)
        logger.info("Deleted user %s", key)
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_all_users(self) -> List[User]:
        return self._repository.find_all()

    def get_users_by_department(self, department: Optional[str]) -> List[User]:
        value = _require(department, "Department cannot be null or empty")
        return self._repository.find_by_department(value)

    def get_users_by_role(self, role: Optional[str]) -> List[User]:
        value = _require(role, "Role cannot be null or empty")
        return self._repository.find_by_role(value)

    def get_active_users(self) -> List[User]:
        return [user for user in self._repository.find_all() if user.is_active is True]

    def get_user_by_email(self, email: Optional[str]) -> Optional[User]:
        value = _require(email, "Email cannot be null or empty")
        return self._repository.find_by_email(value)

    def search_users_by_name(self, fragment: Optional[str]) -> List[User]:
        value = _require(fragment, "Name search term cannot be null or empty")
        return self._repository.find_by_name_containing(value)

    def count_users(self) -> int:
        return self._repository.count()

    # ------------------------------------------------------------------
    # Soft delete
    # ------------------------------------------------------------------
    def deactivate_user(self, uuid: Optional[str]) -> Optional[User]:
        return self._set_active(uuid, False)

    def activate_user(self, uuid: Optional[str]) -> Optional[User]:
        return self._set_active(uuid, True)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _set_active(self, uuid: Optional[str], active: bool) -> Optional[User]:
        key = _require(uuid, "User UUID cannot be null or empty")
        existing = self._repository.find_by_id(key)
        if existing is None:
            return None

        saved = self._repository.save(replace(existing, is_active=active, updated_at=self._clock()))
        logger.info("%s user %s", "Activated" if active else "Deactivated", key)
        return saved

    def _validate_for_creation(self, user: Optional[User]) -> User:
        if user is None:
            raise ValidationError("User cannot be null")
        _require(user.name, "User name is required")
        email = _require(user.email, "User email is required")
        if user.age is None or user.age < MINIMUM_AGE:
            logger.debug("Rejected user %s: age %s below minimum", email, user.age)
            raise ValidationError(f"User age must be at least {MINIMUM_AGE}")

        if not _is_blank(user.uuid):
            uuid = user.uuid.strip()  # type: ignore[union-attr]
            if uuid in self._reserved_ids or "/" in uuid:
                logger.debug("Rejected user %s: uuid %r is not addressable", email, uuid)
                raise ValidationError(f"User UUID {uuid!r} is not allowed")
            if self._repository.exists_by_id(user.uuid):
                logger.debug("Rejected user %s: uuid %s already registered", email, user.uuid)
                raise ValidationError("User with this UUID already exists")

        if any(existing.email == email for existing in self._repository.find_all()):
            logger.debug("Rejected user %s: email already registered", email)
            raise ValidationError("User with this email already exists")
        return user


__all__ = ["MINIMUM_AGE", "UserService"]
