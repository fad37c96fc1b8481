"""Process-wide single-flight guard keyed by identity name."""

from __future__ import annotations

import threading


class SingleFlight:
    """Admit at most one holder per key at a time.

    :meth:`acquire` never blocks: a caller that finds the key taken is
    expected to skip its work rather than queue behind the holder.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active: set[str] = set()

    def acquire(self, key: str) -> bool:
        with self._lock:
            if key in self._active:
                return False
            self._active.add(key)
            return True

    def release(self, key: str) -> None:
        with self._lock:
            self._active.discard(key)

    def is_active(self, key: str) -> bool:
        with self._lock:
            return key in self._active


# Shared by every manager in the process so two managers built for the
# same identity name cannot renew concurrently.
DEFAULT_SINGLE_FLIGHT = SingleFlight()
