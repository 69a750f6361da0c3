"""Typed access to user records held in the record store."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from .errors import StoreClientError
from .models import User
from .store import Item, RecordStore


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: Any) -> datetime:
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise StoreClientError(f"Stored timestamp {value!r} is not ISO-8601") from exc


def user_to_item(user: User) -> Item:
    """Convert a :class:`User` into the document layout kept in the store."""

    item: Dict[str, Any] = {
        "uuid": user.uuid,
        "name": user.name,
        "email": user.email,
        "age": user.age,
        "department": user.department,
        "role": user.role,
        "phoneNumber": user.phone_number,
        "isActive": user.is_active,
        "createdAt": _serialize_datetime(user.created_at) if user.created_at else None,
        "updatedAt": _serialize_datetime(user.updated_at) if user.updated_at else None,
    }
    return {key: value for key, value in item.items() if value is not None}


def _parse_age(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise StoreClientError(f"Stored age {value!r} is not an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise StoreClientError(f"Stored age {value!r} is not an integer") from exc


def _parse_active(value: Any) -> Optional[bool]:
    if value is not None and not isinstance(value, bool):
        raise StoreClientError(f"Stored isActive {value!r} is not a boolean")
    return value


def item_to_user(item: Item) -> User:
    created_at = item.get("createdAt")
    updated_at = item.get("updatedAt")
    return User(
        uuid=item.get("uuid"),
        name=item.get("name"),
        email=item.get("email"),
        age=_parse_age(item.get("age")),
        department=item.get("department"),
        role=item.get("role"),
        phone_number=item.get("phoneNumber"),
        is_active=_parse_active(item.get("isActive")),
        created_at=_parse_datetime(created_at) if created_at else None,
        updated_at=_parse_datetime(updated_at) if updated_at else None,
    )


class UserRepository:
    """Entity-shaped operations over a :class:`RecordStore`.

    Lookups other than :meth:`find_by_id` scan the whole table.
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def save(self, user: User) -> User:
        if not user.uuid:
            raise ValueError("Cannot save a user without a uuid")
        self._store.put_item(user.uuid, user_to_item(user))
        return user

    def find_by_id(self, uuid: str) -> Optional[User]:
        item = self._store.get_item(uuid)
        if item is None:
            return None
        return item_to_user(item)

    def find_all(self) -> List[User]:
        return [item_to_user(item) for item in self._store.scan()]

    def delete(self, uuid: str) -> None:
        self._store.delete_item(uuid)

    def find_by_department(self, department: str) -> List[User]:
        return self._find_where("department", department)

    def find_by_role(self, role: str) -> List[User]:
        return self._find_where("role", role)

    def find_by_email(self, email: str) -> Optional[User]:
        matches = self._find_where("email", email)
        return matches[0] if matches else None

    def find_by_name_containing(self, name: str) -> List[User]:
        needle = name.lower()
        items = self._store.scan(lambda item: needle in str(item.get("name") or "").lower())
        return [item_to_user(item) for item in items]

    def exists_by_id(self, uuid: str) -> bool:
        return self._store.get_item(uuid) is not None

    def count(self) -> int:
        return self._store.count()

    def _find_where(self, attribute: str, value: str) -> List[User]:
        items = self._store.scan(lambda item: item.get(attribute) == value)
        return [item_to_user(item) for item in items]


__all__ = ["UserRepository", "item_to_user", "user_to_item"]
