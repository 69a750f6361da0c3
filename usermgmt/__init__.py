"""User management service: CRUD over user records kept in a key-value store."""

from __future__ import annotations

from typing import Any

from .store import RecordStore, resolve_database_path


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the HTTP application."""

    from .application import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "RecordStore",
    "resolve_database_path",
    "create_app",
]
