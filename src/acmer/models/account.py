"""Account key entity."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

_EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class AccountKeyRecord:
    """Persisted ACME account key for one identity.

    ``key`` holds the JWK JSON object including its private half.  The
    row is created once per name and never updated, so renewals keep
    the same ACME account.
    """

    name: str
    key: dict
    email: str
    domains: tuple[str, ...] = ()
    created_at: datetime = _EPOCH
