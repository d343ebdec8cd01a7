"""
Command line bootstrap for rowaudit.

Usage:
    rowaudit setup [--table NAME ...]   install capture on the configured tables
    rowaudit tables                     list table registrations
    rowaudit serve [--host H] [--port P]
"""

import argparse
import logging
import sys

from rowaudit.core.config import settings
from rowaudit.core.errors import ConfigError, DatabaseUnavailableError
from rowaudit.core.logging import configure_logging

logger = logging.getLogger("rowaudit.cli")


def _cmd_setup(args) -> int:
    from rowaudit.db.session import engine
    from rowaudit.services.capture import bootstrap_audit

    tables = args.table or settings.AUDIT_TABLES
    registrations = bootstrap_audit(engine, tables, key_column=settings.AUDIT_KEY_COLUMN)
    for registration in registrations:
        print(f"{registration.id}\t{registration.table_name}\t{registration.key_column}")
    return 0


def _cmd_tables(args) -> int:
    from rowaudit.db.session import SessionLocal
    from rowaudit.services.records import list_registrations

    db = SessionLocal()
    try:
        for registration in list_registrations(db):
            state = "active" if registration.is_active else "inactive"
            print(f"{registration.id}\t{registration.table_name}\t{registration.key_column}\t{state}")
    finally:
        db.close()
    return 0


def _cmd_serve(args) -> int:
    import uvicorn

    uvicorn.run("rowaudit.main:app", host=args.host, port=args.port, log_config=None)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rowaudit", description="Row change auditing and revert")
    sub = parser.add_subparsers(dest="command", required=True)

    setup = sub.add_parser("setup", help="create the audit store and install capture triggers")
    setup.add_argument(
        "--table",
        action="append",
        help=(
            "table to audit (repeatable); defaults to AUDIT_TABLES. The given tables "
            "replace the configured set: other registered tables are deactivated "
            "and their triggers dropped"
        ),
    )
    setup.set_defaults(handler=_cmd_setup)

    tables = sub.add_parser("tables", help="list registered tables")
    tables.set_defaults(handler=_cmd_tables)

    serve = sub.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=settings.PORT)
    serve.set_defaults(handler=_cmd_serve)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(settings.LOG_LEVEL, log_sql=settings.LOG_SQL)
    try:
        return args.handler(args)
    except (ConfigError, DatabaseUnavailableError) as exc:
        logger.error("%s", exc.message)
        return 1


if __name__ == "__main__":
    sys.exit(main())
