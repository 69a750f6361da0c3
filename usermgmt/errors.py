"""Exception hierarchy shared by the store, service and HTTP layers."""

from __future__ import annotations


class UserManagementError(Exception):
    """Base class for every error raised by the user management service."""

    status_code = 500


class ValidationError(UserManagementError):
    """Raised when a request carries missing or invalid input."""

    status_code = 400


class NotFoundError(UserManagementError):
    """Raised when the target of an operation does not exist."""

    status_code = 404

    def __init__(self, uuid: str) -> None:
        self.uuid = uuid
        super().__init__(f"User not found with ID: {uuid}")


class StoreError(UserManagementError):
    """Base class for failures reported by the record store."""


class StoreServiceError(StoreError):
    """The backing store rejected the request with its own status code."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class StoreClientError(StoreError):
    """The store could not be reached or returned data that could not be decoded."""

    status_code = 500


__all__ = [
    "UserManagementError",
    "ValidationError",
    "NotFoundError",
    "StoreError",
    "StoreServiceError",
    "StoreClientError",
]
