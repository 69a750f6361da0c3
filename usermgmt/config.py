"""Configuration management for the user management service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .store import DEFAULT_BUSY_TIMEOUT, DEFAULT_TABLE_NAME, resolve_database_path

DEFAULT_CONTEXT_PATH = "/user"
DEFAULT_SERVICE_NAME = "User Management System"
DEFAULT_VERSION = "1.0.0"

_ENV_OVERRIDES = {
    "USER_SERVICE_CONTEXT_PATH": "context_path",
    "USER_SERVICE_DB_PATH": "database_path",
    "USER_SERVICE_TABLE": "table_name",
    "USER_SERVICE_LOG_LEVEL": "log_level",
}


def normalize_context_path(value: str) -> str:
    """Return ``value`` with a single leading slash and no trailing slash."""

    stripped = value.strip().strip("/")
    return f"/{stripped}" if stripped else ""


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the HTTP service and its record store."""

    database_path: Path
    context_path: str = DEFAULT_CONTEXT_PATH
    table_name: str = DEFAULT_TABLE_NAME
    busy_timeout: float = DEFAULT_BUSY_TIMEOUT
    service_name: str = DEFAULT_SERVICE_NAME
    version: str = DEFAULT_VERSION
    log_level: str = "INFO"

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw dictionary data.

        Relative ``database_path`` values are resolved against ``base_path``
        (normally the directory holding the configuration file).
        """
        unknown = set(data) - set(Settings.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown configuration fields: {', '.join(sorted(unknown))}")

        raw_db_path = data.get("database_path")
        if raw_db_path:
            candidate = Path(str(raw_db_path)).expanduser()
            if not candidate.is_absolute() and base_path is not None:
                candidate = base_path / candidate
            database_path = candidate.resolve(strict=False)
        else:
            database_path = resolve_database_path(None)

        table_name = str(data.get("table_name", DEFAULT_TABLE_NAME))
        if not table_name.isidentifier():
            raise ValueError(f"table_name must be a valid identifier, got {table_name!r}")

        busy_timeout = float(data.get("busy_timeout", DEFAULT_BUSY_TIMEOUT))  # type: ignore[arg-type]
        if busy_timeout <= 0:
            raise ValueError("busy_timeout must be greater than zero")

        return Settings(
            database_path=database_path,
            context_path=normalize_context_path(str(data.get("context_path", DEFAULT_CONTEXT_PATH))),
            table_name=table_name,
            busy_timeout=busy_timeout,
            service_name=str(data.get("service_name", DEFAULT_SERVICE_NAME)),
            version=str(data.get("version", DEFAULT_VERSION)),
            log_level=str(data.get("log_level", "INFO")).upper(),
        )


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "settings.yaml").resolve(strict=False)
    return candidate


def load_settings(
    config_path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from defaults, an optional YAML file and the environment.

    A missing configuration file is not an error; the defaults apply.
    """
    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("USER_SERVICE_CONFIG"))

    raw: Dict[str, object] = {}
    base_path: Path | None = None
    if path.is_file():
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        raw.update(loaded)
        base_path = path.parent

    for env_name, field_name in _ENV_OVERRIDES.items():
        value = env.get(env_name)
        if value is None or value == "":
            continue
        if field_name == "database_path":
            value = str(resolve_database_path(value))
        raw[field_name] = value

    return Settings.from_dict(raw, base_path=base_path)


__all__ = [
    "DEFAULT_CONTEXT_PATH",
    "DEFAULT_SERVICE_NAME",
    "DEFAULT_VERSION",
    "Settings",
    "load_settings",
    "normalize_context_path",
    "resolve_config_path",
]
