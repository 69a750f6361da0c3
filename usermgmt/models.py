"""Domain model for the user management service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class User:
    """Represents a user record stored in the record store.

    Every field other than ``uuid`` is optional at this level; the service
    decides which ones are required for each operation.
    """

    uuid: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    age: Optional[int] = None
    department: Optional[str] = None
    role: Optional[str] = None
    phone_number: Optional[str] = None
    is_active: Optional[bool] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


__all__ = ["User"]
