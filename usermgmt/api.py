"""HTTP routes exposing user records as JSON."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, FastAPI, status
from pydantic import BaseModel, ConfigDict, Field

from .config import Settings
from .errors import NotFoundError
from .models import User
from .service import UserService


class UserPayload(BaseModel):
    """User document as exchanged over HTTP (camelCase field names)."""

    model_config = ConfigDict(populate_by_name=True)

    uuid: Optional[str] = Field(default=None, max_length=128)
    name: Optional[str] = None
    email: Optional[str] = None
    age: Optional[int] = None
    department: Optional[str] = None
    role: Optional[str] = None
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    is_active: Optional[bool] = Field(default=None, alias="isActive")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    def to_user(self) -> User:
        return User(
            uuid=self.uuid,
            name=self.name,
            email=self.email,
            age=self.age,
            department=self.department,
            role=self.role,
            phone_number=self.phone_number,
            is_active=self.is_active,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class DeleteResponse(BaseModel):
    message: str
    uuid: str
    timestamp: datetime


class HealthResponse(BaseModel):
    status: str
    service: str
    timestamp: datetime
    version: str


def user_to_payload(user: User) -> UserPayload:
    return UserPayload(
        uuid=user.uuid,
        name=user.name,
        email=user.email,
        age=user.age,
        department=user.department,
        role=user.role,
        phone_number=user.phone_number,
        is_active=user.is_active,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )
# Single path segments claimed by fixed routes; a user with one of these
# uuids could never be fetched through ``GET /{uuid}``.
RESERVED_PATH_SEGMENTS = frozenset({"all", "active", "search", "health"})


def build_user_router(service: UserService, settings: Settings) -> APIRouter:
    """Create the router for user endpoints mounted under the context path.

    Service errors propagate as :class:`UserManagementError` and are turned
    into JSON responses by the handlers registered in ``create_app``.
    """

    router = APIRouter(prefix=settings.context_path, tags=["users"])
    collection_path = "" if settings.context_path else "/"

    @router.post(
        collection_path,
        status_code=status.HTTP_201_CREATED,
        response_model=UserPayload,
    )
    def create_user(payload: UserPayload) -> UserPayload:
        return user_to_payload(service.create_user(payload.to_user()))

    @router.put(collection_path, response_model=UserPayload)
    def update_user(payload: UserPayload) -> UserPayload:
        updated = service.update_user(payload.to_user())
        if updated is None:
            raise NotFoundError(payload.uuid or "")
        return user_to_payload(updated)

    @router.get("/all", response_model=List[UserPayload])
    def list_users() -> List[UserPayload]:
        return [user_to_payload(user) for user in service.get_all_users()]

    @router.get("/active", response_model=List[UserPayload])
    def list_active_users() -> List[UserPayload]:
        return [user_to_payload(user) for user in service.get_active_users()]

    @router.get("/search", response_model=List[UserPayload])
    def search_users(name: Optional[str] = None) -> List[UserPayload]:
        return [user_to_payload(user) for user in service.search_users_by_name(name)]

    @router.get("/department/{department}", response_model=List[UserPayload])
    def list_users_by_department(department: str) -> List[UserPayload]:
        return [user_to_payload(user) for user in service.get_users_by_department(department)]

    @router.get("/role/{role}", response_model=List[UserPayload])
    def list_users_by_role(role: str) -> List[UserPayload]:
        return [user_to_payload(user) for user in service.get_users_by_role(role)]

    @router.get("/health", response_model=HealthResponse)
    async def healthcheck() -> HealthResponse:
        return HealthResponse(
            status="UP",
            service=settings.service_name,
            timestamp=datetime.now(timezone.utc),
            version=settings.version,
        )

    @router.get("/{uuid}", response_model=UserPayload)
    def get_user(uuid: str) -> UserPayload:
        user = service.get_user(uuid)
        if user is None:
            raise NotFoundError(uuid)
        return user_to_payload(user)

    @router.delete("/{uuid}", response_model=DeleteResponse)
    def delete_user(uuid: str) -> DeleteResponse:
        if not service.delete_user(uuid):
            raise NotFoundError(uuid)
        return DeleteResponse(
            message="User successfully deleted",
            uuid=uuid,
            timestamp=datetime.now(timezone.utc),
        )

    @router.post("/{uuid}/activate", response_model=UserPayload)
    def activate_user(uuid: str) -> UserPayload:
        user = service.activate_user(uuid)
        if user is None:
            raise NotFoundError(uuid)
        return user_to_payload(user)

    @router.post("/{uuid}/deactivate", response_model=UserPayload)
    def deactivate_user(uuid: str) -> UserPayload:
        user = service.deactivate_user(uuid)
        if user is None:
            raise NotFoundError(uuid)
        return user_to_payload(user)

    return router


def register_user_routes(app: FastAPI, service: UserService, settings: Settings) -> None:
    """Expose the user endpoints on the provided FastAPI application."""

    app.include_router(build_user_router(service, settings))


__all__ = [
    "DeleteResponse",
    "HealthResponse",
    "RESERVED_PATH_SEGMENTS",
    "UserPayload",
    "build_user_router",
    "register_user_routes",
    "user_to_payload",
]
