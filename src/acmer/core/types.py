"""Enumerated types shared across acmer.

All enums inherit from :class:`enum.StrEnum` so their ``.value`` is a
plain string that psycopg serialises as TEXT and that reads naturally
in log output.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Challenge records
# ---------------------------------------------------------------------------


class RecordType(StrEnum):
    TXT = "TXT"


class ChallengeKind(StrEnum):
    DNS_01 = "dns-01"


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class LifecycleState(StrEnum):
    IDLE = "idle"
    CHECKING = "checking"
    UP_TO_DATE = "up_to_date"
    NEEDS_ISSUANCE = "needs_issuance"
    ISSUING = "issuing"


class CheckOutcome(StrEnum):
    """Result of a single check cycle."""

    UP_TO_DATE = "up_to_date"
    ISSUED = "issued"
    FAILED = "failed"
    SKIPPED = "skipped"


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class EventLevel(StrEnum):
    INFO = "info"
    ERROR = "error"
