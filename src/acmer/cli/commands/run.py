"""Long-running renewal loop for every configured identity."""

from __future__ import annotations

import logging
import signal
import sys
import threading

from acmer.cli.commands._common import open_database

log = logging.getLogger(__name__)


def run_managers(config, args, *, stop_event: threading.Event | None = None) -> None:
    """Start one manager per identity and block until SIGINT/SIGTERM."""
    from acmer.app import create_managers  # noqa: PLC0415
    from acmer.db import close_database  # noqa: PLC0415

    db = open_database(config, args)
    stop_event = stop_event or threading.Event()

    def _request_stop(signum, _frame) -> None:
        log.info("Received %s, shutting down", signal.Signals(signum).name)
        stop_event.set()

    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGINT, _request_stop)
        signal.signal(signal.SIGTERM, _request_stop)

    managers = create_managers(config.settings, db, auto_start=False)
    if not managers:
        log.error("No identities configured")
        close_database(db)
        sys.exit(1)

    held = {entry.name for entry in config.settings.identities if entry.no_auto_start}
    try:
        for manager in managers:
            if manager.identity.name in held:
                log.info("Identity %s has no_auto_start set, not starting", manager.identity.name)
                continue
            manager.start()
        stop_event.wait()
    finally:
        for manager in managers:
            manager.stop()
        close_database(db)
