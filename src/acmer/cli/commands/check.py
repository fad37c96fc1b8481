"""One-shot check cycle."""

from __future__ import annotations

import sys

from acmer.cli.commands._common import open_database
from acmer.core.types import CheckOutcome


def run_check_command(config, args) -> None:
    """Run a single check for the selected identities; exit 1 if any failed."""
    from acmer.app import create_managers  # noqa: PLC0415
    from acmer.db import close_database  # noqa: PLC0415

    names = args.identities
    if names:
        configured = {entry.name for entry in config.settings.identities}
        unknown = sorted(set(names) - configured)
        if unknown:
            print(f"acmer: error: unknown identity: {', '.join(unknown)}", file=sys.stderr)  # noqa: T201
            sys.exit(1)

    db = open_database(config, args)
    try:
        managers = create_managers(config.settings, db, auto_start=False, names=names)
        outcomes = {m.identity.name: m.run_check() for m in managers}
    finally:
        close_database(db)

    for name, outcome in outcomes.items():
        print(f"{name}: {outcome.value}")  # noqa: T201

    if CheckOutcome.FAILED in outcomes.values():
        sys.exit(1)
