"""Per-identity ACME account key management.

Each identity gets exactly one account key, created on first use and
then reused for every renewal so the CA sees the same subscriber
account.  There is no rotation.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import josepy as jose

from acmer.core.crypto import DEFAULT_KEY_SIZE, generate_private_key
from acmer.core.errors import AcmerError, StorageUnavailable
from acmer.logging.sanitize import sanitize_jwk
from acmer.models.account import AccountKeyRecord

if TYPE_CHECKING:
    from acmer.models.identity import Identity
    from acmer.repositories.account import AccountKeyRepository

log = logging.getLogger(__name__)


class AccountKeyStore:
    """Find-or-create access to account keys in the record store."""

    def __init__(
        self,
        accounts: AccountKeyRepository,
        *,
        key_size: int = DEFAULT_KEY_SIZE,
    ) -> None:
        self._accounts = accounts
        self._key_size = key_size

    def find_or_create(self, identity: Identity) -> jose.JWK:
        """Return the account key for *identity*, creating it if needed.

        Concurrent first-time callers converge on whichever key was
        stored first; the losing caller's generated key is discarded.

        Raises
        ------
        StorageUnavailable
            When the record store cannot be read or written.

        """
        try:
            record = self._accounts.find_by_name(identity.name)
            if record is None:
                record = self._create(identity)
        except AcmerError:
            raise
        except Exception as exc:  # noqa: BLE001
            msg = f"Account key lookup for {identity.name!r} failed: {exc}"
            raise StorageUnavailable(msg) from exc

        try:
            return jose.JWK.from_json(record.key)
        except (jose.DeserializationError, TypeError, ValueError) as exc:
            msg = f"Stored account key for {identity.name!r} is unreadable: {exc}"
            raise StorageUnavailable(msg, retryable=False) from exc

    def _create(self, identity: Identity) -> AccountKeyRecord:
        jwk = jose.JWKRSA(key=generate_private_key(self._key_size))
        candidate = AccountKeyRecord(
            name=identity.name,
            key=jwk.to_json(),
            email=identity.email,
            domains=identity.domains,
        )
        stored = self._accounts.insert_if_absent(candidate)
        if stored is None:
            msg = f"Record store did not confirm account key for {identity.name!r}"
            raise StorageUnavailable(msg)
        if stored.key == candidate.key:
            log.info(
                "Created account key for %s: %s",
                identity.name,
                sanitize_jwk(stored.key),
                extra={"identity": identity.name},
            )
        else:
            log.info(
                "Account key for %s was created concurrently; using stored key",
                identity.name,
                extra={"identity": identity.name},
            )
        return stored
