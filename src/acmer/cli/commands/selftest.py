"""DNS-01 plugin self-test subcommand."""

from __future__ import annotations

import sys

from acmer.cli.commands._common import open_database


def run_selftest(config, args) -> None:
    """Publish, read back and remove a disposable record under ``--domain``."""
    from acmer.app import create_plugin_factory  # noqa: PLC0415
    from acmer.challenge.selftest import selftest_zone  # noqa: PLC0415
    from acmer.core.errors import AcmerError  # noqa: PLC0415
    from acmer.db import close_database  # noqa: PLC0415
    from acmer.repositories.record import DnsRecordRepository  # noqa: PLC0415

    db = open_database(config, args)
    try:
        plugin = create_plugin_factory(DnsRecordRepository(db), config.settings.challenges)()
        challenge = selftest_zone(plugin, args.domain)
    except AcmerError as exc:
        print(f"acmer: selftest failed: {exc.detail}", file=sys.stderr)  # noqa: T201
        sys.exit(1)
    finally:
        close_database(db)

    print(f"selftest passed: {challenge.label}")  # noqa: T201
