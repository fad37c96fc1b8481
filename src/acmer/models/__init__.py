"""Entity models for acmer.

All models are frozen dataclasses.  Use :func:`dataclasses.replace`
for modifications (copy-on-write).
"""

from acmer.models.account import AccountKeyRecord
from acmer.models.certificate import CertificateMaterial
from acmer.models.identity import Identity
from acmer.models.record import ChallengeRecord

__all__ = [
    "AccountKeyRecord",
    "CertificateMaterial",
    "ChallengeRecord",
    "Identity",
]
