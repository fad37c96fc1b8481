"""DNS-01 plugin backed by the shared ``dns_records`` table.

The authoritative DNS server for the challenge zones answers TXT
queries straight from this table, so writing a row is all it takes to
publish a proof.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from acmer.challenge.base import ChallengeFulfillmentPlugin, Dns01Challenge
from acmer.core.errors import AcmerError, StorageUnavailable
from acmer.core.types import RecordType
from acmer.logging.sanitize import mask_digest
from acmer.models.record import DEFAULT_RECORD_TTL, ChallengeRecord

if TYPE_CHECKING:
    from acmer.repositories.record import DnsRecordRepository

log = logging.getLogger(__name__)

DEFAULT_PROPAGATION_DELAY = 5.0


class RecordStorePlugin(ChallengeFulfillmentPlugin):
    """Challenge plugin writing TXT proofs to a :class:`DnsRecordRepository`.

    Parameters
    ----------
    records:
        Repository over the shared record table.
    propagation_delay:
        Fixed wait, in seconds, advertised to the ACME client.
    ttl:
        TTL stored with each record; expired records are ignored by
        :meth:`get` and removed by ``acmer records purge``.

    """

    def __init__(
        self,
        records: DnsRecordRepository,
        *,
        propagation_delay: float = DEFAULT_PROPAGATION_DELAY,
        ttl: int = DEFAULT_RECORD_TTL,
    ) -> None:
        self._records = records
        self._propagation_delay = propagation_delay
        self._ttl = ttl
        self._context: dict[str, Any] = {}

    @property
    def propagation_delay(self) -> float:
        return self._propagation_delay

    @property
    def request_id(self) -> str:
        return str(self._context.get("request", "-"))

    def init(self, context: dict[str, Any]) -> None:
        self._context = dict(context or {})

    def zones(self, hosts: list[str]) -> list[str]:
        # Hosts are already apex-resolved by the caller
        return list(hosts)

    def set(self, challenge: Dns01Challenge) -> None:
        record = ChallengeRecord(
            name=challenge.label,
            type=RecordType.TXT,
            data=challenge.dns_authorization,
            ttl=self._ttl,
        )
        try:
            stored = self._records.upsert(record)
        except AcmerError:
            raise
        except Exception as exc:  # noqa: BLE001
            msg = f"Could not store TXT record {record.name}: {exc}"
            raise StorageUnavailable(msg) from exc
        if stored is None:
            msg = f"Record store did not confirm TXT record {record.name}"
            raise StorageUnavailable(msg)
        log.info(
            "Published TXT %s = %s",
            record.name,
            mask_digest(record.data),
            extra={"request_id": self.request_id},
        )

    def get(self, challenge: Dns01Challenge) -> str | None:
        try:
            found = self._records.find_one(
                challenge.label,
                RecordType.TXT,
                challenge.dns_authorization,
            )
        except AcmerError:
            raise
        except Exception as exc:  # noqa: BLE001
            msg = f"Could not read TXT record {challenge.label}: {exc}"
            raise StorageUnavailable(msg) from exc
        if found is None:
            log.debug(
                "TXT %s = %s not found",
                challenge.label,
                mask_digest(challenge.dns_authorization),
                extra={"request_id": self.request_id},
            )
            return None
        return found.data

    def remove(self, challenge: Dns01Challenge) -> int:
        try:
            removed = self._records.delete_one(
                challenge.label,
                RecordType.TXT,
                challenge.dns_authorization,
            )
        except AcmerError:
            raise
        except Exception as exc:  # noqa: BLE001
            msg = f"Could not remove TXT record {challenge.label}: {exc}"
            raise StorageUnavailable(msg) from exc
        log.info(
            "Removed %d TXT record(s) %s = %s",
            removed,
            challenge.label,
            mask_digest(challenge.dns_authorization),
            extra={"request_id": self.request_id},
        )
        return removed
