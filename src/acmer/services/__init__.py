"""Account keys, local certificate storage and the lifecycle manager."""

from acmer.services.account_key import AccountKeyStore
from acmer.services.certificate_store import CertificateStore
from acmer.services.lifecycle import CertificateLifecycleManager, is_stale
from acmer.services.single_flight import SingleFlight

__all__ = [
    "AccountKeyStore",
    "CertificateLifecycleManager",
    "CertificateStore",
    "SingleFlight",
    "is_stale",
]
