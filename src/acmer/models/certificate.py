"""Local certificate material entity."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from acmer.core.crypto import leaf_not_after


@dataclass(frozen=True)
class CertificateMaterial:
    """Private key and full chain for one identity.

    ``not_after`` always comes from the end-entity certificate (the
    first block of ``fullchain_pem``), never from an intermediate.
    """

    private_key_pem: str
    fullchain_pem: str
    not_after: datetime

    @classmethod
    def from_pem(cls, private_key_pem: str, fullchain_pem: str) -> CertificateMaterial:
        """Build material from PEM text, parsing the leaf's expiry.

        Raises :class:`~acmer.core.errors.CertificateParseError` when the
        chain does not parse.
        """
        return cls(
            private_key_pem=private_key_pem,
            fullchain_pem=fullchain_pem,
            not_after=leaf_not_after(fullchain_pem),
        )
