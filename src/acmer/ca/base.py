"""Abstract ACME client contract.

A lifecycle manager only ever talks to a certificate authority through
this interface::

    client.init(directory_url)
    account = client.create_account(
        subscriber_email=..., agree_to_terms=True, account_key=jwk,
    )
    issued = client.create_certificate(
        account=account,
        account_key=jwk,
        csr=der_bytes,
        domains=["example.com"],
        challenges={"dns-01": plugin},
    )
"""

from __future__ import annotations

import abc
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from acmer.core.errors import AcmeProtocolError

if TYPE_CHECKING:
    import josepy as jose

    from acmer.challenge.base import ChallengeFulfillmentPlugin

_PEM_CERT_RE = re.compile(
    r"-----BEGIN CERTIFICATE-----[\s\S]+?-----END CERTIFICATE-----",
)


@dataclass(frozen=True)
class AcmeAccount:
    """A registered subscriber account.

    Attributes
    ----------
    uri:
        Account URL assigned by the CA.
    email:
        Contact address the account was registered with.
    handle:
        Client-specific session object bound to the account.

    """

    uri: str
    email: str
    handle: Any = None


@dataclass(frozen=True)
class IssuedChain:
    """Certificate returned by the CA, split as the files expect it.

    ``cert`` is the end-entity PEM block; ``chain`` holds the remaining
    intermediates (possibly empty).
    """

    cert: str
    chain: str

    @property
    def fullchain(self) -> str:
        return f"{self.cert}\n{self.chain}\n"


def split_fullchain(fullchain_pem: str) -> IssuedChain:
    """Split a PEM bundle into its leaf and the rest of the chain."""
    blocks = _PEM_CERT_RE.findall(fullchain_pem)
    if not blocks:
        msg = "CA returned no certificate"
        raise AcmeProtocolError(msg, retryable=False)
    return IssuedChain(cert=blocks[0], chain="\n".join(blocks[1:]))


class AcmeClient(abc.ABC):
    """Executes ACME account and order flows."""

    @abc.abstractmethod
    def init(self, directory_url: str) -> None:
        """Bind the client to the CA directory at *directory_url*."""

    @abc.abstractmethod
    def create_account(
        self,
        *,
        subscriber_email: str,
        agree_to_terms: bool,
        account_key: jose.JWK,
    ) -> AcmeAccount:
        """Register, or look up, the account for *account_key*.

        Idempotent: calling it again with the same key returns the same
        account.

        Raises
        ------
        AcmeProtocolError
            When the CA rejects the request or cannot be reached.

        """

    @abc.abstractmethod
    def create_certificate(
        self,
        *,
        account: AcmeAccount,
        account_key: jose.JWK,
        csr: bytes,
        domains: list[str],
        challenges: dict[str, ChallengeFulfillmentPlugin],
    ) -> IssuedChain:
        """Order, validate and finalize a certificate for *csr*.

        *csr* is DER-encoded.  *challenges* maps a challenge type name
        (``"dns-01"``) to the plugin that fulfills it.  Every record a
        plugin published is removed before this returns or raises.
        """
