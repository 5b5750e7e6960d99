"""Command line entry point.

Usage:
  account-service serve            # run the HTTP API with uvicorn
  account-service migrate          # create the accounts table
"""

from __future__ import annotations

import argparse
import logging
import signal

import uvicorn
from psycopg_pool import ConnectionPool

from .config import get_settings, reload_settings
from .repository import PostgresAccountRepository

logger = logging.getLogger(__name__)


def _handle_sighup(signum, frame) -> None:
    reload_settings()


def serve(args: argparse.Namespace) -> int:
    settings = get_settings()
    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, _handle_sighup)
    host = args.host or settings.http_host
    port = args.port or settings.http_port
    logger.info("starting %s %s on %s:%s", settings.app_name, settings.version, host, port)
    uvicorn.run("account_service.main:app", host=host, port=port, log_level=settings.log_level.lower())
    return 0


def migrate(args: argparse.Namespace) -> int:
    settings = get_settings()
    with ConnectionPool(settings.database_url, min_size=1, max_size=1) as pool:
        PostgresAccountRepository(pool).ensure_schema()
    logger.info("migration finished")
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="account-service", description="User account API.")
    sub = ap.add_subparsers(dest="command", required=True)

    serve_cmd = sub.add_parser("serve", help="run the HTTP API")
    serve_cmd.add_argument("--host", default=None)
    serve_cmd.add_argument("--port", type=int, default=None)
    serve_cmd.set_defaults(func=serve)

    migrate_cmd = sub.add_parser("migrate", help="create the database schema")
    migrate_cmd.set_defaults(func=migrate)
    return ap


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)
