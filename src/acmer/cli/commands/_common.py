"""Helpers shared by CLI subcommands."""

from __future__ import annotations

import sys

from acmer.db import init_database


def open_database(config, args):
    """Initialise the record store or exit with a readable error."""
    try:
        return init_database(config.settings.database)
    except Exception as exc:
        if args.debug:
            raise
        print(f"acmer: error: database initialisation failed: {exc}", file=sys.stderr)  # noqa: T201
        sys.exit(1)
