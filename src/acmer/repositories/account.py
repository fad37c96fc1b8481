"""ACME account key repository."""

from __future__ import annotations

from typing import TYPE_CHECKING

from psycopg.types.json import Jsonb
from pypgkit import BaseRepository

from acmer.models.account import AccountKeyRecord

if TYPE_CHECKING:
    from pypgkit import Database


class AccountKeyRepository(BaseRepository[AccountKeyRecord]):
    table_name = "acme_accounts"
    primary_key = "name"

    def __init__(self, db: Database) -> None:
        super().__init__(db)
        self._db = db

    def _row_to_entity(self, row: dict) -> AccountKeyRecord:
        return AccountKeyRecord(
            name=row["name"],
            key=row["key"],
            email=row["email"],
            domains=tuple(row.get("domains") or ()),
            created_at=row["created_at"],
        )

    def _entity_to_row(self, entity: AccountKeyRecord) -> dict:
        return {
            "name": entity.name,
            "key": Jsonb(entity.key),
            "email": entity.email,
            "domains": list(entity.domains),
        }

    def find_by_name(self, name: str) -> AccountKeyRecord | None:
        row = self._db.fetch_one(
            "SELECT * FROM acme_accounts WHERE name = %s",
            (name,),
            as_dict=True,
        )
        return self._row_to_entity(row) if row else None

    def insert_if_absent(self, record: AccountKeyRecord) -> AccountKeyRecord | None:
        """Insert *record* unless a row for its name already exists.

        Returns whichever row is stored for the name afterwards: the
        new one, or the one a concurrent caller inserted first.  The
        primary key on ``name`` makes racing first-time callers
        converge on a single key.
        """
        row = self._db.fetch_one(
            "INSERT INTO acme_accounts (name, key, email, domains) "
            "VALUES (%s, %s, %s, %s) "
            "ON CONFLICT (name) DO NOTHING "
            "RETURNING *",
            (record.name, Jsonb(record.key), record.email, list(record.domains)),
            as_dict=True,
        )
        if row:
            return self._row_to_entity(row)
        return self.find_by_name(record.name)
