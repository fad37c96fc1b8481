"""Certificate lifecycle manager.

One manager owns one identity.  A daemon thread runs a check
immediately on start and then once per ``check_interval``; each check
either confirms the stored certificate is still good or (re)issues it
over ACME DNS-01.

Usage::

    manager = CertificateLifecycleManager(
        identity,
        certificates=CertificateStore("/etc/acmer/certs"),
        account_keys=AccountKeyStore(account_repo),
        acme_client_factory=AcmeV2Client,
        plugin_factory=lambda: RecordStorePlugin(record_repo),
        directory_url=STAGING_DIRECTORY_URL,
    )
    ...
    manager.stop()
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from acmer.core.crypto import (
    DEFAULT_KEY_SIZE,
    build_csr,
    generate_private_key,
    private_key_to_pem,
)
from acmer.core.domains import normalize_domains
from acmer.core.types import ChallengeKind, CheckOutcome, EventLevel, LifecycleState
from acmer.events import EventBus
from acmer.models.certificate import CertificateMaterial
from acmer.services.single_flight import DEFAULT_SINGLE_FLIGHT, SingleFlight

if TYPE_CHECKING:
    from collections.abc import Callable

    from acmer.ca.base import AcmeClient
    from acmer.challenge.base import ChallengeFulfillmentPlugin
    from acmer.models.identity import Identity
    from acmer.services.account_key import AccountKeyStore
    from acmer.services.certificate_store import CertificateStore

log = logging.getLogger(__name__)


def is_stale(not_after: datetime, renewal_days: int, now: datetime) -> bool:
    """Return whether a certificate expiring at *not_after* is due for renewal.

    A certificate is stale once ``now + renewal_days`` is strictly past
    its expiry; landing exactly on the expiry is still fresh.
    """
    return now + timedelta(days=renewal_days) > not_after


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CertificateLifecycleManager:
    """Keeps one identity's certificate issued and renewed.

    Parameters
    ----------
    identity:
        The identity to manage.
    certificates:
        Local key/chain storage.
    account_keys:
        Find-or-create access to the identity's ACME account key.
    acme_client_factory:
        Returns a fresh :class:`AcmeClient` for each issuance.
    plugin_factory:
        Returns a fresh challenge plugin for each issuance.
    directory_url:
        ACME directory to issue from.
    key_size:
        RSA size for newly generated subject keys.
    events:
        Event bus progress and failures are reported to.
    single_flight:
        Overlap guard; defaults to the process-wide instance.
    clock:
        Returns the current aware UTC time; injectable for tests.
    auto_start:
        Start the check loop from the constructor.

    """

    def __init__(  # noqa: PLR0913
        self,
        identity: Identity,
        *,
        certificates: CertificateStore,
        account_keys: AccountKeyStore,
        acme_client_factory: Callable[[], AcmeClient],
        plugin_factory: Callable[[], ChallengeFulfillmentPlugin],
        directory_url: str,
        key_size: int = DEFAULT_KEY_SIZE,
        events: EventBus | None = None,
        single_flight: SingleFlight | None = None,
        clock: Callable[[], datetime] | None = None,
        auto_start: bool = True,
    ) -> None:
        self._identity = identity
        self._certs = certificates
        self._account_keys = account_keys
        self._acme_client_factory = acme_client_factory
        self._plugin_factory = plugin_factory
        self._directory_url = directory_url
        self._key_size = key_size
        self._events = events if events is not None else EventBus()
        self._single_flight = single_flight or DEFAULT_SINGLE_FLIGHT
        self._clock = clock or _utcnow

        self._state = LifecycleState.IDLE
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

        if auto_start:
            self.start()

    # -- properties ----------------------------------------------------------

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def state(self) -> LifecycleState:
        with self._state_lock:
            return self._state

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _set_state(self, state: LifecycleState) -> None:
        with self._state_lock:
            self._state = state

    def _emit(self, message: str, *, exc_info: BaseException | None = None) -> None:
        level = EventLevel.ERROR if exc_info is not None else EventLevel.INFO
        self._events.emit(level, message, identity=self._identity.name, exc_info=exc_info)

    # -- scheduling ----------------------------------------------------------

    def start(self) -> None:
        """Create the identity directory and start the check loop."""
        if self.running:
            return
        self._emit(f"Initializing certificate manager for {self._identity.name}")
        self._certs.prepare(self._identity.name)

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name=f"lifecycle-{self._identity.name}",
            daemon=True,
        )
        self._thread.start()
        log.info(
            "Lifecycle manager started for %s (interval=%ds, renewal_days=%d)",
            self._identity.name,
            int(self._identity.check_interval.total_seconds()),
            self._identity.renewal_days,
            extra={"identity": self._identity.name},
        )

    def stop(self, timeout: float | None = None) -> None:
        """Cancel the pending tick and wait for an in-flight cycle to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
            log.info(
                "Lifecycle manager stopped for %s",
                self._identity.name,
                extra={"identity": self._identity.name},
            )

    def _run(self) -> None:
        interval = self._identity.check_interval.total_seconds()
        while not self._stop_event.is_set():
            self.run_check()
            self._stop_event.wait(timeout=interval)

    # -- check cycle ---------------------------------------------------------

    def run_check(self) -> CheckOutcome:
        """Run one guarded check cycle, reporting instead of raising failures."""
        name = self._identity.name
        if not self._single_flight.acquire(name):
            self._emit(f"A check for {name} is already running; skipping this one")
            return CheckOutcome.SKIPPED

        try:
            self._emit(f"Checking certificates for {name}")
            try:
                outcome = self.check_cert()
            except Exception as exc:  # noqa: BLE001
                self._emit(f"Certificate check for {name} failed: {exc}", exc_info=exc)
                outcome = CheckOutcome.FAILED
            self._emit(f"Certificate check for {name} finished: {outcome.value}")
            return outcome
        finally:
            self._set_state(LifecycleState.IDLE)
            self._single_flight.release(name)

    def check_cert(self) -> CheckOutcome:
        """Decide whether the stored certificate needs (re)issuing and act on it.

        Missing or unparseable material goes straight to issuance.
        Stale material is deleted first so a crash mid-issuance cannot
        leave it looking current.
        """
        name = self._identity.name
        self._set_state(LifecycleState.CHECKING)

        material = self._certs.read(name)
        if material is None:
            self._emit(f"No usable certificate for {name}; issuing")
            self._set_state(LifecycleState.NEEDS_ISSUANCE)
            self.issue()
            return CheckOutcome.ISSUED

        if is_stale(material.not_after, self._identity.renewal_days, self._clock()):
            self._emit(
                f"Certificate for {name} expires {material.not_after.isoformat()}; "
                "due for renewal",
            )
            self._certs.delete(name)
            self._set_state(LifecycleState.NEEDS_ISSUANCE)
            self.issue()
            return CheckOutcome.ISSUED

        self._emit(
            f"Certificate for {name} is good until {material.not_after.isoformat()}",
        )
        self._set_state(LifecycleState.UP_TO_DATE)
        return CheckOutcome.UP_TO_DATE

    def issue(self) -> CertificateMaterial:
        """Obtain a certificate over ACME and store it."""
        identity = self._identity
        self._set_state(LifecycleState.ISSUING)

        acme = self._acme_client_factory()
        acme.init(self._directory_url)

        account_key = self._account_keys.find_or_create(identity)
        self._emit(f"Registering ACME account for {identity.email}")
        account = acme.create_account(
            subscriber_email=identity.email,
            agree_to_terms=True,
            account_key=account_key,
        )

        subject_key = self._certs.read_private_key(identity.name)
        if subject_key is None:
            self._emit("Generating a new server key")
            subject_key = generate_private_key(self._key_size)
        else:
            self._emit("Reusing the existing server key")

        domains = normalize_domains(identity.domains)
        csr = build_csr(subject_key, domains)

        self._emit(f"Requesting certificate for {', '.join(domains)}")
        issued = acme.create_certificate(
            account=account,
            account_key=account_key,
            csr=csr,
            domains=domains,
            challenges={ChallengeKind.DNS_01.value: self._plugin_factory()},
        )

        material = CertificateMaterial.from_pem(
            private_key_to_pem(subject_key),
            f"{issued.cert}\n{issued.chain}\n",
        )
        self._certs.write(identity.name, material)
        self._emit(
            f"Saved certificate for {identity.name}, valid until "
            f"{material.not_after.isoformat()}",
        )
        return material
