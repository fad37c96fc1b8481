"""Abstract base for DNS-01 challenge fulfillment plugins.

An ACME client drives a plugin through one issuance attempt::

    plugin.init({"request": request_id})
    zones = plugin.zones(domains)
    plugin.set(challenge)         # publish the proof
    time.sleep(plugin.propagation_delay)
    plugin.get(challenge)         # confirm it is visible
    ...                           # CA validates
    plugin.remove(challenge)      # always, on success and failure

Plugins must use the same record shape in ``set``, ``get`` and
``remove`` and must always include the authorization digest in the
match, so concurrent attempts for the same hostname stay isolated.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Dns01Challenge:
    """One DNS-01 challenge as handed to a plugin.

    Attributes
    ----------
    identifier_value:
        The identifier being validated, e.g. ``"www.example.com"``.
    dns_authorization:
        The key-authorization digest the TXT record must contain.
    dns_host:
        Fully qualified TXT record name, when the client computed one.
    dns_prefix:
        Record name relative to ``dns_zone``, e.g. ``"_acme-challenge.www"``.
    dns_zone:
        Zone apex the record is published in.
    token:
        Challenge token, for diagnostics only.

    """

    identifier_value: str
    dns_authorization: str
    dns_host: str | None = None
    dns_prefix: str | None = None
    dns_zone: str | None = None
    token: str | None = None

    @property
    def label(self) -> str:
        """TXT record name: ``dns_host`` or ``dns_prefix.dns_zone``."""
        if self.dns_host:
            return self.dns_host
        if not (self.dns_prefix and self.dns_zone):
            msg = (
                f"Challenge for {self.identifier_value!r} has neither dns_host "
                "nor dns_prefix/dns_zone"
            )
            raise ValueError(msg)
        return f"{self.dns_prefix}.{self.dns_zone}"


class ChallengeFulfillmentPlugin(abc.ABC):
    """Publishes and retracts DNS-01 proofs for an ACME client."""

    @abc.abstractmethod
    def init(self, context: dict[str, Any]) -> None:
        """Bind the plugin to one issuance attempt.  No side effects."""

    @abc.abstractmethod
    def zones(self, hosts: list[str]) -> list[str]:
        """Return the zone apexes proofs for *hosts* will be placed in."""

    @abc.abstractmethod
    def set(self, challenge: Dns01Challenge) -> None:
        """Publish the proof for *challenge*.

        Must raise :class:`~acmer.core.errors.StorageUnavailable` unless
        the record is durably stored when this returns.
        """

    @abc.abstractmethod
    def get(self, challenge: Dns01Challenge) -> str | None:
        """Return the published digest for *challenge*, or ``None``."""

    @abc.abstractmethod
    def remove(self, challenge: Dns01Challenge) -> int:
        """Delete exactly the proof for *challenge*.  Returns records removed."""

    @property
    @abc.abstractmethod
    def propagation_delay(self) -> float:
        """Seconds to wait after ``set`` before asking the CA to validate."""
