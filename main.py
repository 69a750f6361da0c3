"""Command-line interface for the user management service."""

from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

import httpx

from usermgmt.application import build_store
from usermgmt.config import Settings, load_settings
from usermgmt.repository import UserRepository
from usermgmt.service import UserService

logger = logging.getLogger("usermgmt.main")

_DEFAULT_SERVICE_URL = "http://localhost:8080"


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="User management service utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default=None,
        help="Path to a YAML settings file (default: USER_SERVICE_CONFIG or config/settings.yaml)",
    )

    serve_parser = subparsers.add_parser(
        "serve", parents=[common], help="Start the HTTP user service"
    )
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="Port for the HTTP API (default: 8080)",
    )

    subparsers.add_parser("init-db", parents=[common], help="Create the user record table")
    subparsers.add_parser("list", parents=[common], help="Print every stored user")

    check_parser = subparsers.add_parser(
        "check", parents=[common], help="Query the health endpoint of a running service"
    )
    check_parser.add_argument(
        "--service-url",
        default=None,
        help=f"Base URL of a running service (default: {_DEFAULT_SERVICE_URL})",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "list", "check"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _load_settings(config: str | None) -> Settings:
    return load_settings(Path(config).expanduser() if config else None)


def _serve(settings: Settings, *, host: str, port: int) -> None:
    from usermgmt.application import create_app
    import uvicorn

    logger.info("Starting user service on http://%s:%s%s", host, port, settings.context_path or "/")
    app = create_app(settings=settings)
    uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower())


def _list_users(settings: Settings) -> None:
    service = UserService(UserRepository(build_store(settings)))
    users = service.get_all_users()
    if not users:
        print("No users are currently stored.")
        return

    print(f"{service.count_users()} user(s) found:")
    print(f"{'UUID':<36}  {'Name':<24}  {'Email':<32}  Active")
    print("-" * 104)
    for user in users:
        active = "yes" if user.is_active else "no"
        print(f"{user.uuid or '':<36}  {user.name or '':<24}  {user.email or '':<32}  {active}")


def _check_service(settings: Settings, service_url: str | None) -> int:
    base_url = (service_url or _DEFAULT_SERVICE_URL).rstrip("/")
    endpoint = f"{base_url}{settings.context_path}/health"

    try:
        response = httpx.get(endpoint, timeout=10.0)
    except httpx.HTTPError as exc:
        print(f"Failed to contact user service: {exc}")
        return 1

    if response.status_code != 200:
        print(f"Service responded with {response.status_code}: {response.text.strip()}")
        return 1

    try:
        payload = response.json()
    except ValueError:
        print("Service returned an unexpected response format.")
        return 1

    print(
        f"{payload.get('service', 'unknown service')} {payload.get('version', '?')}: "
        f"{payload.get('status', 'UNKNOWN')} at {payload.get('timestamp', 'unknown time')}"
    )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    settings = _load_settings(getattr(args, "config", None))

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    if args.command == "serve":
        _serve(settings, host=args.host, port=args.port)
    elif args.command == "init-db":
        store = build_store(settings)
        print(f"Record store initialised at {store.path} (table {store.table_name}).")
    elif args.command == "list":
        _list_users(settings)
    elif args.command == "check":
        return _check_service(settings, args.service_url)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
