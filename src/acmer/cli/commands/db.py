"""Record store management subcommands."""

from __future__ import annotations

import logging
import sys

from acmer.cli.commands._common import open_database

log = logging.getLogger(__name__)

_TABLES = ("dns_records", "acme_accounts")


def run_db(config, args) -> None:
    """Handle db subcommands."""
    if args.db_command == "status":
        _db_status(config, args)
    else:
        print("usage: acmer -c CONFIG db status", file=sys.stderr)  # noqa: T201
        sys.exit(1)


def _db_status(config, args) -> None:
    """Check connectivity and that both tables exist."""
    from acmer.db import close_database  # noqa: PLC0415

    db = open_database(config, args)
    try:
        db.fetch_value("SELECT 1")
        found = db.fetch_value(
            "SELECT count(*) FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND table_name = ANY(%s)",
            (list(_TABLES),),
        )
    except Exception as exc:
        if args.debug:
            raise
        print(f"acmer: error: record store check failed: {exc}", file=sys.stderr)  # noqa: T201
        sys.exit(1)
    finally:
        close_database(db)

    if found != len(_TABLES):
        print(f"record store reachable, schema incomplete ({found}/{len(_TABLES)} tables)")  # noqa: T201
        sys.exit(1)
    print("record store OK")  # noqa: T201
