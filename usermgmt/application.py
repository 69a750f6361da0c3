"""Application factory wiring the record store, service and HTTP routes."""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .api import RESERVED_PATH_SEGMENTS, register_user_routes
from .config import Settings, load_settings
from .errors import UserManagementError
from .repository import UserRepository
from .service import UserService
from .store import RecordStore

logger = logging.getLogger("usermgmt.application")


def _format_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        message = error.get("msg", "Invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": _format_validation_errors(exc)},
    )


def build_store(settings: Settings) -> RecordStore:
    """Create and initialise the record store described by ``settings``."""

    store = RecordStore(
        settings.database_path,
        table_name=settings.table_name,
        busy_timeout=settings.busy_timeout,
    )
    store.initialize()
    return store


def create_app(
    *,
    settings: Settings | None = None,
    store: RecordStore | None = None,
    service: UserService | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application for the user management service."""

    app_settings = settings or load_settings()

    if service is None:
        app_store = store or build_store(app_settings)
        service = UserService(UserRepository(app_store), reserved_ids=RESERVED_PATH_SEGMENTS)
        logger.info(
            "Using record store %s (table %s)",
            app_store.path,
            app_store.table_name,
        )

    app = FastAPI(
        title=app_settings.service_name,
        version=app_settings.version,
        description="CRUD API for user records backed by a key-value record store.",
    )
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    @app.exception_handler(UserManagementError)
    async def handle_user_management_error(_: Request, exc: UserManagementError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Request failed with store error: %s", exc)
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    app.state.settings = app_settings
    app.state.service = service

    register_user_routes(app, service, app_settings)
    return app


__all__ = ["build_store", "create_app"]
