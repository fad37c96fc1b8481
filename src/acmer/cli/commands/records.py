"""Challenge record maintenance subcommands."""

from __future__ import annotations

import sys

from acmer.cli.commands._common import open_database


def run_records(config, args) -> None:
    """Handle records subcommands."""
    if args.records_command != "purge":
        print("usage: acmer -c CONFIG records purge", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    from acmer.db import close_database  # noqa: PLC0415
    from acmer.repositories.record import DnsRecordRepository  # noqa: PLC0415

    db = open_database(config, args)
    try:
        removed = DnsRecordRepository(db).purge_expired()
    finally:
        close_database(db)
    print(f"purged {removed} expired challenge record(s)")  # noqa: T201
