"""Command-line interface for the newsletter subscription service."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import Sequence

try:
    import httpx
except ImportError as exc:  # pragma: no cover - exercised in environments missing deps
    raise SystemExit(
        "The 'httpx' package is required. Run `pip install -e .` from the project root "
        "to install dependencies."
    ) from exc

from sqlalchemy.exc import SQLAlchemyError

from newsletter.config import Settings, load_settings, resolve_config_path
from newsletter.database import ConnectionPool, resolve_database_path
from newsletter.listener import ListenerError, bind_listener

logger = logging.getLogger("newsletter.main")

_DEFAULT_SERVICE_URL = "http://127.0.0.1:8000"


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default=None,
        help="Path to the YAML configuration file (default: $NEWSLETTER_CONFIG or config/newsletter.yaml)",
    )
    common.add_argument("--db-path", default=None, help="Override the SQLite database location")
    common.add_argument(
        "--log-level",
        default=None,
        choices=["critical", "error", "warning", "info", "debug"],
        help="Override the configured log level",
    )

    parser = argparse.ArgumentParser(description="Newsletter subscription service")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", parents=[common], help="Create the subscriptions table and exit")

    serve_parser = subparsers.add_parser("serve", parents=[common], help="Start the HTTP service")
    serve_parser.add_argument("--host", default=None, help="Bind address for the service")
    serve_parser.add_argument("--port", type=int, default=None, help="Port for the service")
    serve_parser.add_argument(
        "--pool-size",
        type=int,
        default=None,
        help="Maximum number of pooled database connections",
    )

    check_parser = subparsers.add_parser(
        "check", parents=[common], help="Probe /health_check on a running service"
    )
    check_parser.add_argument(
        "--service-url",
        default=None,
        help=f"Base URL of a running service (default: {_DEFAULT_SERVICE_URL})",
    )
    check_parser.add_argument("--timeout", type=float, default=5.0, help="Request timeout in seconds")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "check"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _load_settings(args: argparse.Namespace) -> Settings:
    config_path = Path(args.config).expanduser() if args.config else resolve_config_path(
        os.getenv("NEWSLETTER_CONFIG")
    )
    try:
        settings = load_settings(config_path)
    except (OSError, ValueError) as exc:
        raise SystemExit(f"Invalid configuration in {config_path}: {exc}") from exc

    application = settings.application
    database = settings.database
    if getattr(args, "host", None):
        application = replace(application, host=args.host)
    if getattr(args, "port", None) is not None:
        application = replace(application, port=args.port)
    if args.db_path:
        database = replace(database, path=resolve_database_path(args.db_path))
    if getattr(args, "pool_size", None) is not None:
        database = replace(database, pool_size=args.pool_size)

    return Settings(
        application=application,
        database=database,
        log_level=args.log_level or settings.log_level,
    )


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _initialise_database(settings: Settings) -> ConnectionPool:
    try:
        pool = ConnectionPool(
            settings.database.path,
            max_size=settings.database.pool_size,
            timeout=settings.database.timeout,
        )
        pool.initialize()
    except (OSError, ValueError, SQLAlchemyError) as exc:
        raise SystemExit(f"Failed to open database {settings.database.path}: {exc}") from exc
    logger.info("Database initialised at %s", settings.database.path)
    return pool


def _serve(settings: Settings, pool: ConnectionPool) -> None:
    from newsletter.server import run

    try:
        listener = bind_listener(settings.application.address)
    except ListenerError as exc:
        raise SystemExit(str(exc)) from exc

    server = run(listener, pool, log_level=settings.log_level)
    server.run()


def _check(service_url: str | None, timeout: float) -> int:
    base_url = (service_url or _DEFAULT_SERVICE_URL).rstrip("/")
    endpoint = base_url + "/health_check"

    try:
        response = httpx.get(endpoint, timeout=timeout)
    except httpx.HTTPError as exc:
        print(f"Failed to contact service at {endpoint}: {exc}")
        return 1

    if response.status_code != 200:
        print(f"Service responded with {response.status_code}: {response.text.strip()}")
        return 1

    print(f"{base_url} is healthy.")
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    settings = _load_settings(args)
    _configure_logging(settings.log_level)

    if args.command == "check":
        raise SystemExit(_check(args.service_url, args.timeout))

    pool = _initialise_database(settings)
    try:
        if args.command == "serve":
            _serve(settings, pool)
        elif args.command == "init-db":
            print("Database initialisation complete.")
    finally:
        pool.close()


if __name__ == "__main__":
    main()
