"""Repositories over the shared record store."""

from acmer.repositories.account import AccountKeyRepository
from acmer.repositories.record import DnsRecordRepository

__all__ = ["AccountKeyRepository", "DnsRecordRepository"]
