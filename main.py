"""Command-line interface for the web starter."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from webstarter.config import AppConfig
from webstarter.database import Database
from webstarter.errors import ConfigurationError
from webstarter.security import PasswordHasher
from webstarter.seed import seed_database

logger = logging.getLogger("webstarter.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Web starter utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Create the credential database tables")
    subparsers.add_parser("seed", help="Insert the demo accounts into the database")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on (default: 8000)")
    serve_parser.add_argument(
        "--reload",
        action="store_true",
        help="Restart the server when source files change (development only)",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "seed"}

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


def _initialise_database(config: AppConfig) -> Database:
    database = Database(config.database_path)
    database.initialize()
    logger.info("Database initialised at %s", config.database_path)
    return database


def _serve(*, config: AppConfig, database: Database, host: str, port: int, reload: bool) -> None:
    from webstarter.service import create_app
    import uvicorn

    logger.info("Starting web server on http://%s:%s", host, port)
    if reload:
        uvicorn.run("webstarter.service:create_app", factory=True, host=host, port=port, reload=True)
        return

    app = create_app(config=config, database=database)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _seed(config: AppConfig, database: Database) -> None:
    hasher = PasswordHasher(rounds=config.bcrypt_rounds)
    created = seed_database(database, hasher)
    if not created:
        print("Seed accounts already present; nothing to do.")
        return
    for account in created:
        print(f"Created account #{account.id}: {account.name} <{account.email}>")


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    try:
        config = AppConfig.from_env()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    database = _initialise_database(config)

    if args.command == "serve":
        _serve(config=config, database=database, host=args.host, port=args.port, reload=args.reload)
    elif args.command == "seed":
        _seed(config, database)
    elif args.command == "init-db":
        print("Database initialisation complete.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
