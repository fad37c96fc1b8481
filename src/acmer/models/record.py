"""Challenge (DNS TXT) record entity."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from acmer.core.types import RecordType

DEFAULT_RECORD_TTL = 14400

_EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class ChallengeRecord:
    name: str
    data: str
    type: RecordType = RecordType.TXT
    ttl: int = DEFAULT_RECORD_TTL
    created_at: datetime = _EPOCH
