"""Command-line interface for the users service."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from dataclasses import replace
from typing import Sequence

import httpx

from users_service.config import ServiceConfig, load_config, resolve_config_path
from users_service.database import Database, DuplicateEmailError, StoreError
from users_service.query import ListQuery

logger = logging.getLogger("users_service.main")

_DEFAULT_SERVICE_URL = "http://127.0.0.1:8080"


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Users service utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default=None,
        help="Path to the YAML configuration file (defaults to USERS_SERVICE_CONFIG or config/service.yaml)",
    )

    serve_parser = subparsers.add_parser("serve", parents=[common], help="Start the HTTP service")
    serve_parser.add_argument("--host", default=None, help="Bind address for the API")
    serve_parser.add_argument("--port", type=int, default=None, help="Port for the API (default: 8080)")

    subparsers.add_parser("init-db", parents=[common], help="Initialise the users database")

    create_parser = subparsers.add_parser("create-user", parents=[common], help="Add a new user")
    create_parser.add_argument("name", help="Display name for the user")
    create_parser.add_argument("email", help="Unique email address")

    list_parser = subparsers.add_parser("list-users", parents=[common], help="List stored users")
    list_parser.add_argument("-q", "--query", default=None, help="Case-insensitive name/email filter")
    list_parser.add_argument("--sort", default=None, help="Sort field: id, name or email")
    list_parser.add_argument("--order", default=None, help="Sort direction: asc or desc")
    list_parser.add_argument("--limit", default=None, help="Page size between 1 and 100")
    list_parser.add_argument("--offset", default=None, help="Number of rows to skip")

    status_parser = subparsers.add_parser(
        "status", parents=[common], help="Check the health endpoint of a running service"
    )
    status_parser.add_argument(
        "--service-url",
        default=None,
        help=f"Base URL of a running service (default: {_DEFAULT_SERVICE_URL})",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "create-user", "list-users", "status"}

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


def _load_config(config_arg: str | None) -> ServiceConfig:
    return load_config(resolve_config_path(config_arg or os.getenv("USERS_SERVICE_CONFIG")))


def _initialise_database(config: ServiceConfig) -> Database:
    database = Database(config.database_path)
    database.initialize()
    logger.info("Database initialised at %s", config.database_path)
    return database


def _serve(config: ServiceConfig) -> None:
    from users_service.application import create_application
    import uvicorn

    logger.info("Starting users API on http://%s:%s", config.host, config.port)
    app = create_application(config=config)
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())


def _create_user(database: Database, name: str, email: str) -> int:
    cleaned_name = name.strip()
    cleaned_email = email.strip().lower()
    if not cleaned_name or "@" not in cleaned_email:
        print("Error: a non-empty name and a valid email address are required.", file=sys.stderr)
        return 1

    try:
        user = database.create_user(cleaned_name, cleaned_email)
    except DuplicateEmailError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Created user #{user.id}: {user.name} <{user.email}>")
    return 0


def _list_users(database: Database, args: argparse.Namespace) -> int:
    query = ListQuery.from_params(
        q=args.query,
        sort=args.sort,
        order=args.order,
        limit=args.limit,
        offset=args.offset,
    )
    page = database.list_users(query)
    if not page.items:
        print("No users matched.")
        return 0

    print(
        f"{len(page.items)} user(s) (sort={page.sort} {page.order}, "
        f"limit={page.limit}, offset={page.offset}):"
    )
    print(f"{'ID':>4}  {'Name':<24}  {'Email':<32}  {'Created':<19}  Updated")
    print("-" * 100)
    for user in page.items:
        created = user.created_at.strftime("%Y-%m-%d %H:%M:%S")
        updated = user.updated_at.strftime("%Y-%m-%d %H:%M:%S")
        print(f"{user.id:>4}  {user.name:<24}  {user.email:<32}  {created:<19}  {updated}")
    return 0


def _check_status(base_url: str) -> int:
    endpoint = base_url.rstrip("/") + "/health"

    try:
        response = httpx.get(endpoint, timeout=10.0)
    except httpx.HTTPError as exc:
        print(f"Failed to contact users service: {exc}")
        return 1

    if response.status_code != 200:
        print(f"Service responded with {response.status_code}: {response.text.strip()}")
        return 1

    try:
        payload = response.json()
    except ValueError:
        print("Service returned an unexpected response format.")
        return 1

    print(f"Service at {base_url} reports status: {payload.get('status', 'unknown')}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    config = _load_config(getattr(args, "config", None))

    logging.basicConfig(level=config.log_level, format="%(asctime)s [%(levelname)s] %(message)s")

    if args.command == "serve":
        overrides = {}
        if getattr(args, "host", None):
            overrides["host"] = args.host
        if getattr(args, "port", None):
            overrides["port"] = args.port
        _serve(replace(config, **overrides) if overrides else config)
        return 0

    if args.command == "status":
        return _check_status(args.service_url or _DEFAULT_SERVICE_URL)

    try:
        database = _initialise_database(config)
        if args.command == "create-user":
            return _create_user(database, args.name, args.email)
        if args.command == "list-users":
            return _list_users(database, args)
    except StoreError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print("Database initialisation complete.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
