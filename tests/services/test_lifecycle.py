"""Tests for the certificate lifecycle manager."""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

import pytest
from cryptography import x509

from acmer.challenge.record_store import RecordStorePlugin
from acmer.core.crypto import private_key_to_pem
from acmer.core.errors import AcmeProtocolError, StorageUnavailable
from acmer.core.types import CheckOutcome, EventLevel, LifecycleState
from acmer.events import EventBus
from acmer.models.identity import Identity
from acmer.services.account_key import AccountKeyStore
from acmer.services.certificate_store import CertificateStore
from acmer.services.lifecycle import CertificateLifecycleManager, is_stale
from acmer.services.single_flight import SingleFlight

_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def store(tmp_path):
    return CertificateStore(tmp_path / "certs")


@pytest.fixture()
def events():
    bus = EventBus()
    bus.collected = []
    bus.subscribe(bus.collected.append)
    return bus


@pytest.fixture()
def make_manager(store, account_repo, record_repo, fake_acme, events):
    """Return a factory for managers wired to in-memory collaborators."""
    created = []

    def _make(identity, **overrides):
        kwargs = {
            "certificates": store,
            "account_keys": AccountKeyStore(account_repo),
            "acme_client_factory": fake_acme,
            "plugin_factory": lambda: RecordStorePlugin(record_repo, propagation_delay=0),
            "directory_url": "https://ca.test/directory",
            "events": events,
            "single_flight": SingleFlight(),
            "auto_start": False,
        }
        kwargs.update(overrides)
        manager = CertificateLifecycleManager(identity, **kwargs)
        created.append(manager)
        return manager

    yield _make
    for manager in created:
        manager.stop(timeout=5)


def _messages(events, level=None):
    return [e.message for e in events.collected if level is None or e.level is level]


# ---------------------------------------------------------------------------
# Staleness
# ---------------------------------------------------------------------------


class TestIsStale:
    def test_far_from_expiry_is_fresh(self):
        assert is_stale(_NOW + timedelta(days=60), 30, _NOW) is False

    def test_within_window_is_stale(self):
        assert is_stale(_NOW + timedelta(days=10), 30, _NOW) is True

    def test_exact_boundary_is_fresh(self):
        assert is_stale(_NOW + timedelta(days=30), 30, _NOW) is False

    def test_one_second_past_boundary_is_stale(self):
        assert is_stale(_NOW + timedelta(days=30) - timedelta(seconds=1), 30, _NOW) is True

    def test_zero_renewal_days_only_stale_once_expired(self):
        assert is_stale(_NOW, 0, _NOW) is False
        assert is_stale(_NOW - timedelta(seconds=1), 0, _NOW) is True


# ---------------------------------------------------------------------------
# Check cycle
# ---------------------------------------------------------------------------


class TestCheckCycle:
    def test_missing_material_issues_once(self, make_manager, identity, store, fake_acme):
        manager = make_manager(identity)

        assert manager.run_check() is CheckOutcome.ISSUED

        assert fake_acme.issued == [["example.com", "www.example.com"]]
        assert store.key_path("www").is_file()
        assert store.chain_path("www").is_file()
        assert store.read("www") is not None
        assert manager.state is LifecycleState.IDLE

    def test_fresh_material_is_left_alone(
        self, make_manager, identity, store, fake_acme, stored_material
    ):
        original, _ = stored_material(store, "www", _NOW + timedelta(days=60))
        manager = make_manager(identity, clock=lambda: _NOW)

        assert manager.run_check() is CheckOutcome.UP_TO_DATE

        assert fake_acme.issued == []
        assert fake_acme.accounts == []
        assert store.read("www") == original

    def test_corrupted_chain_is_reissued(
        self, make_manager, identity, store, fake_acme, stored_material
    ):
        stored_material(store, "www", _NOW + timedelta(days=60))
        store.chain_path("www").write_bytes(b"-----BEGIN CERTIFICATE-----\n\xff\xfe corrupted\n")
        manager = make_manager(identity)

        assert manager.run_check() is CheckOutcome.ISSUED

        assert fake_acme.issued == [["example.com", "www.example.com"]]
        assert store.read("www") is not None

    def test_stale_material_is_replaced(
        self, make_manager, identity, store, fake_acme, stored_material
    ):
        original, _ = stored_material(store, "www", _NOW + timedelta(days=10))
        manager = make_manager(identity, clock=lambda: _NOW)

        assert manager.run_check() is CheckOutcome.ISSUED

        assert len(fake_acme.issued) == 1
        renewed = store.read("www")
        assert renewed is not None
        assert renewed.fullchain_pem != original.fullchain_pem
        # Stale files are deleted before reissue, so the key is new too
        assert renewed.private_key_pem != original.private_key_pem

    def test_surviving_key_is_reused(
        self, make_manager, identity, store, fake_acme, stored_material
    ):
        _, key = stored_material(store, "www", _NOW + timedelta(days=60))
        store.chain_path("www").unlink()
        manager = make_manager(identity)

        assert manager.run_check() is CheckOutcome.ISSUED

        assert store.read("www").private_key_pem == private_key_to_pem(key)
        assert "Reusing the existing server key" in _messages(manager.events)

    def test_account_key_created_once_across_renewals(
        self, make_manager, identity, account_repo, fake_acme, store
    ):
        manager = make_manager(identity)
        manager.run_check()
        store.delete("www")
        manager.run_check()

        assert account_repo.inserts == 1
        assert fake_acme.accounts[0] == fake_acme.accounts[1]

    def test_idn_domains_reach_csr_as_ascii(self, make_manager, fake_acme):
        identity = Identity(name="idn", email="ops@example.com", domains=("münchen.de",))
        manager = make_manager(identity)

        assert manager.run_check() is CheckOutcome.ISSUED

        csr = x509.load_der_x509_csr(fake_acme.seen_csrs[0])
        san = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
        assert san.get_values_for_type(x509.DNSName) == ["xn--mnchen-3ya.de"]
        assert fake_acme.issued == [["xn--mnchen-3ya.de"]]

    def test_acme_failure_reports_and_does_not_raise(
        self, make_manager, identity, fake_acme, record_repo, store
    ):
        fake_acme.fail_with = AcmeProtocolError("order invalid")
        manager = make_manager(identity)

        assert manager.run_check() is CheckOutcome.FAILED

        errors = _messages(manager.events, EventLevel.ERROR)
        assert len(errors) == 1
        assert "order invalid" in errors[0]
        assert record_repo.records == []
        assert store.read("www") is None
        assert manager.state is LifecycleState.IDLE

    def test_listeners_are_optional(self, make_manager, identity):
        manager = make_manager(identity, events=EventBus())
        assert manager.run_check() is CheckOutcome.ISSUED


class TestStorageFailure:
    def test_set_failure_aborts_before_validation(
        self, make_manager, identity, record_repo, fake_acme, store, storage_error
    ):
        record_repo.fail_upsert = storage_error
        manager = make_manager(identity)

        with pytest.raises(StorageUnavailable):
            manager.issue()

        assert fake_acme.validated == []
        assert fake_acme.issued == []
        assert record_repo.records == []
        assert store.read("www") is None

    def test_set_failure_is_a_failed_cycle(self, make_manager, identity, record_repo, storage_error):
        record_repo.fail_upsert = storage_error
        manager = make_manager(identity)

        assert manager.run_check() is CheckOutcome.FAILED
        assert "record store offline" in _messages(manager.events, EventLevel.ERROR)[0]


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------


class TestScheduling:
    def test_overlapping_check_is_skipped(self, make_manager, identity, fake_acme):
        guard = SingleFlight()
        guard.acquire("www")
        manager = make_manager(identity, single_flight=guard)

        assert manager.run_check() is CheckOutcome.SKIPPED

        assert fake_acme.issued == []
        assert guard.is_active("www")

    def test_guard_released_after_failure(self, make_manager, identity, fake_acme):
        guard = SingleFlight()
        fake_acme.fail_with = AcmeProtocolError("boom")
        manager = make_manager(identity, single_flight=guard)

        manager.run_check()

        assert not guard.is_active("www")

    def test_start_runs_first_check_immediately_and_stop_joins(
        self, make_manager, identity, events, fake_acme
    ):
        finished = threading.Event()
        events.subscribe(lambda e: "finished" in e.message and finished.set())

        manager = make_manager(identity, auto_start=True)

        assert finished.wait(timeout=30)
        assert manager.running
        manager.stop(timeout=10)
        assert not manager.running
        assert len(fake_acme.issued) == 1
        assert _messages(events)[0] == "Initializing certificate manager for www"

    def test_start_creates_identity_directory(self, make_manager, identity, store):
        manager = make_manager(identity)
        manager.start()
        manager.stop(timeout=10)
        assert store.identity_dir("www").is_dir()
