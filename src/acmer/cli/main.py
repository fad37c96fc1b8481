"""acmer command-line entry point.

Usage::

    acmer -c /etc/acmer/config.yaml
    acmer -c config.yaml --validate-only
    acmer -c config.yaml run
    acmer -c config.yaml check --identity www
    acmer -c config.yaml selftest --domain example.com
    acmer -c config.yaml db status
    acmer -c config.yaml records purge
    python -m acmer -c config.yaml
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)


def _get_version() -> str:
    from acmer import __version__  # noqa: PLC0415

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="acmer",
        description="acmer - DNS-01 certificate issuance and renewal manager",
    )
    parser.add_argument(
        "-c",
        "--config",
        required=True,
        metavar="PATH",
        help="Path to the configuration file (YAML or JSON).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration file and exit.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # run
    subparsers.add_parser("run", help="Run the renewal loop for every identity (default)")

    # check
    check_parser = subparsers.add_parser("check", help="Run one check cycle and exit")
    check_parser.add_argument(
        "--identity",
        action="append",
        dest="identities",
        metavar="NAME",
        help="Only check this identity (repeatable).",
    )

    # selftest
    selftest_parser = subparsers.add_parser(
        "selftest",
        help="Exercise the DNS-01 record store plugin",
    )
    selftest_parser.add_argument("--domain", required=True, help="Zone to publish a test record in")

    # db
    db_parser = subparsers.add_parser("db", help="Record store management")
    db_sub = db_parser.add_subparsers(dest="db_command")
    db_sub.add_parser("status", help="Check record store connectivity")

    # records
    records_parser = subparsers.add_parser("records", help="Challenge record maintenance")
    records_sub = records_parser.add_subparsers(dest="records_command")
    records_sub.add_parser("purge", help="Delete challenge records past their TTL")

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    print(f"acmer: error: {message}", file=sys.stderr)  # noqa: T201


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, dispatches."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    config_path = Path(args.config)
    if not config_path.is_file():
        _print_error(f"configuration file not found: {config_path}")
        sys.exit(1)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        from acmer.config import AcmerConfig, ConfigValidationError  # noqa: PLC0415

        config = AcmerConfig(
            config_file=str(config_path),
            schema_file="bundled",
        )
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(f"failed to load configuration: {exc}")
        sys.exit(1)

    from acmer.logging import configure_logging  # noqa: PLC0415

    configure_logging(config.settings.logging)

    if args.validate_only:
        _print_settings_summary(config)
        sys.exit(0)

    command = args.command

    if command == "check":
        from acmer.cli.commands.check import run_check_command  # noqa: PLC0415

        run_check_command(config, args)
    elif command == "selftest":
        from acmer.cli.commands.selftest import run_selftest  # noqa: PLC0415

        run_selftest(config, args)
    elif command == "db":
        from acmer.cli.commands.db import run_db  # noqa: PLC0415

        run_db(config, args)
    elif command == "records":
        from acmer.cli.commands.records import run_records  # noqa: PLC0415

        run_records(config, args)
    else:
        # No subcommand = run
        from acmer.cli.commands.run import run_managers  # noqa: PLC0415

        _print_settings_summary(config)
        run_managers(config, args)


def _print_settings_summary(config) -> None:
    """Print a short summary of the loaded configuration."""
    settings = config.settings
    lines = [f"acmer {_get_version()}", f"  cert_dir: {settings.cert_dir}"]
    for entry in settings.identities:
        env = entry.custom_env_directory or ("production" if entry.production else "staging")
        lines.append(
            f"  identity {entry.name}: {', '.join(entry.domains)} "
            f"[{env}, renew {entry.renewal_days}d before expiry, "
            f"check every {entry.check_interval_seconds}s]",
        )
    print("\n".join(lines))  # noqa: T201
