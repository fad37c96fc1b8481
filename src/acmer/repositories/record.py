"""DNS challenge record repository.

Every lookup and delete is keyed on ``(name, type, data)``: the
authorization digest is always part of the predicate so that two
identities proving the same hostname never see or delete each other's
records.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pypgkit import BaseRepository

from acmer.core.types import RecordType
from acmer.models.record import ChallengeRecord

if TYPE_CHECKING:
    from pypgkit import Database

_NOT_EXPIRED = "created_at + make_interval(secs => ttl) > now()"


class DnsRecordRepository(BaseRepository[ChallengeRecord]):
    table_name = "dns_records"
    primary_key = "id"

    def __init__(self, db: Database) -> None:
        super().__init__(db)
        self._db = db

    def _row_to_entity(self, row: dict) -> ChallengeRecord:
        return ChallengeRecord(
            name=row["name"],
            type=RecordType(row["type"]),
            data=row["data"],
            ttl=row["ttl"],
            created_at=row["created_at"],
        )

    def _entity_to_row(self, entity: ChallengeRecord) -> dict:
        return {
            "name": entity.name,
            "type": entity.type.value,
            "data": entity.data,
            "ttl": entity.ttl,
        }

    def upsert(self, record: ChallengeRecord) -> ChallengeRecord | None:
        """Insert *record*, refreshing it if the same triple already exists.

        Returns the stored row, or ``None`` if the database did not
        confirm the write.  Re-placing an identical record restarts its
        TTL instead of failing on the unique constraint.
        """
        row = self._db.fetch_one(
            "INSERT INTO dns_records (name, type, data, ttl) "
            "VALUES (%s, %s, %s, %s) "
            "ON CONFLICT (name, type, data) "
            "DO UPDATE SET ttl = EXCLUDED.ttl, created_at = now() "
            "RETURNING *",
            (record.name, record.type.value, record.data, record.ttl),
            as_dict=True,
        )
        return self._row_to_entity(row) if row else None

    def find_one(self, name: str, record_type: RecordType, data: str) -> ChallengeRecord | None:
        """Return the live record matching the full triple, if any."""
        row = self._db.fetch_one(
            "SELECT * FROM dns_records "
            f"WHERE name = %s AND type = %s AND data = %s AND {_NOT_EXPIRED}",
            (name, record_type.value, data),
            as_dict=True,
        )
        return self._row_to_entity(row) if row else None

    def delete_one(self, name: str, record_type: RecordType, data: str) -> int:
        """Delete the record matching the full triple.  Returns rows removed."""
        return self._db.execute(
            "DELETE FROM dns_records WHERE name = %s AND type = %s AND data = %s",
            (name, record_type.value, data),
        )

    def purge_expired(self) -> int:
        """Delete records whose TTL has elapsed.  Returns rows removed."""
        return self._db.execute(
            f"DELETE FROM dns_records WHERE NOT ({_NOT_EXPIRED})",
        )
