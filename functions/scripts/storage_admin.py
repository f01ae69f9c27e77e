"""
Maintenance commands for the shared storage table.

Runs the same components the API uses, so a deployment can be checked from
a shell without going through HTTP.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from storage_api.config import get_database_config, get_settings
from storage_api.db import ping_storage
from storage_api.dependencies import get_storage_db
from storage_api.routes import diagnostic_payload


logger = logging.getLogger(__name__)


def cmd_diag(args: argparse.Namespace) -> int:
    payload = diagnostic_payload(get_database_config())
    print(json.dumps(payload.model_dump(by_alias=True), indent=2))
    return 0


def cmd_ensure_schema(args: argparse.Namespace) -> int:
    db = get_storage_db()
    db.ensure_schema()
    logger.info("Storage table is ready")
    return 0


def cmd_ping(args: argparse.Namespace) -> int:
    db = get_storage_db()
    db.ensure_schema()
    if ping_storage(db, get_settings().ping_key):
        logger.info("Ping round trip OK")
        return 0
    logger.error("Ping round trip returned a different stamp")
    return 1


def cmd_show(args: argparse.Namespace) -> int:
    settings = get_settings()
    key = settings.ping_key if args.ping else settings.storage_key
    db = get_storage_db()
    db.ensure_schema()
    record = db.get_record(key)
    if record is None:
        logger.info("No record stored under %s", key)
        return 0
    print(json.dumps(record.as_dict(), indent=2, sort_keys=True))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Shared storage maintenance")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "diag", help="Print configuration presence flags"
    ).set_defaults(func=cmd_diag)
    subparsers.add_parser(
        "ensure-schema", help="Create the storage table if missing"
    ).set_defaults(func=cmd_ensure_schema)
    subparsers.add_parser(
        "ping", help="Write a stamp and verify it reads back"
    ).set_defaults(func=cmd_ping)
    show = subparsers.add_parser("show", help="Print the stored document")
    show.add_argument(
        "--ping",
        action="store_true",
        help="Show the ping marker instead of the application state",
    )
    show.set_defaults(func=cmd_show)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=get_settings().log_level.upper(), format="%(levelname)s:%(message)s"
    )

    if args.func is not cmd_diag and not get_database_config().has_database_config:
        logger.error("Postgres is not configured (no database environment variables)")
        return 2
    if args.func is not cmd_diag and get_storage_db() is None:
        logger.error("Could not resolve a connection URL")
        return 2
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
