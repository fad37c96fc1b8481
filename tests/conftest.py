"""Root conftest for the acmer test suite."""

from __future__ import annotations

import sys
import threading
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import yaml
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from acmer.ca.base import AcmeAccount, AcmeClient, IssuedChain  # noqa: E402
from acmer.challenge.base import Dns01Challenge  # noqa: E402
from acmer.core.errors import StorageUnavailable  # noqa: E402
from acmer.models.identity import Identity  # noqa: E402

# ---------------------------------------------------------------------------
# Test CA
# ---------------------------------------------------------------------------


class _TestCA:
    """Tiny EC CA that signs leaf certificates for arbitrary public keys."""

    def __init__(self) -> None:
        self.key = ec.generate_private_key(ec.SECP256R1())
        name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "acmer test CA")])
        now = datetime.now(UTC)
        self.cert = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(self.key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(days=1))
            .not_valid_after(now + timedelta(days=3650))
            .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
            .sign(self.key, hashes.SHA256())
        )
        self.cert_pem = self.cert.public_bytes(serialization.Encoding.PEM).decode("ascii")

    def issue(self, public_key, domains: list[str], not_after: datetime) -> IssuedChain:
        now = datetime.now(UTC)
        leaf = (
            x509.CertificateBuilder()
            .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domains[0])]))
            .issuer_name(self.cert.subject)
            .public_key(public_key)
            .serial_number(x509.random_serial_number())
            .not_valid_before(min(now, not_after) - timedelta(days=1))
            .not_valid_after(not_after)
            .add_extension(
                x509.SubjectAlternativeName([x509.DNSName(d) for d in domains]),
                critical=False,
            )
            .sign(self.key, hashes.SHA256())
        )
        leaf_pem = leaf.public_bytes(serialization.Encoding.PEM).decode("ascii").strip()
        return IssuedChain(cert=leaf_pem, chain=self.cert_pem.strip())


@pytest.fixture(scope="session")
def test_ca() -> _TestCA:
    return _TestCA()


# ---------------------------------------------------------------------------
# In-memory record store
# ---------------------------------------------------------------------------


class InMemoryRecordRepository:
    """Stand-in for DnsRecordRepository keyed on (name, type, data)."""

    def __init__(self) -> None:
        self.records: list = []
        self.fail_upsert: Exception | None = None
        self.unconfirmed = False
        self._lock = threading.Lock()

    def upsert(self, record):
        if self.fail_upsert is not None:
            raise self.fail_upsert
        if self.unconfirmed:
            return None
        with self._lock:
            self.records = [
                r
                for r in self.records
                if (r.name, r.type, r.data) != (record.name, record.type, record.data)
            ]
            stored = replace(record, created_at=datetime.now(UTC))
            self.records.append(stored)
            return stored

    def find_one(self, name, record_type, data):
        with self._lock:
            for r in self.records:
                if (r.name, r.type, r.data) == (name, record_type, data):
                    return r
        return None

    def delete_one(self, name, record_type, data) -> int:
        with self._lock:
            before = len(self.records)
            self.records = [
                r for r in self.records if (r.name, r.type, r.data) != (name, record_type, data)
            ]
            return before - len(self.records)

    def purge_expired(self) -> int:
        return 0


@pytest.fixture()
def record_repo() -> InMemoryRecordRepository:
    return InMemoryRecordRepository()


class InMemoryAccountRepository:
    """Stand-in for AccountKeyRepository with insert-if-absent semantics."""

    def __init__(self) -> None:
        self.rows: dict = {}
        self.inserts = 0
        self._lock = threading.Lock()

    def find_by_name(self, name):
        with self._lock:
            return self.rows.get(name)

    def insert_if_absent(self, record):
        with self._lock:
            self.inserts += 1
            return self.rows.setdefault(record.name, record)


@pytest.fixture()
def account_repo() -> InMemoryAccountRepository:
    return InMemoryAccountRepository()


# ---------------------------------------------------------------------------
# Fake ACME client
# ---------------------------------------------------------------------------


class FakeAcmeClient(AcmeClient):
    """AcmeClient that validates through the plugin and signs with the test CA."""

    def __init__(self, ca: _TestCA, *, validity: timedelta = timedelta(days=90)) -> None:
        self.ca = ca
        self.validity = validity
        self.directory_url: str | None = None
        self.accounts: list = []
        self.issued: list[list[str]] = []
        self.validated: list[str] = []
        self.seen_csrs: list[bytes] = []
        self.fail_with: Exception | None = None

    def __call__(self) -> FakeAcmeClient:
        # Lets the instance double as its own factory
        return self

    def init(self, directory_url: str) -> None:
        self.directory_url = directory_url

    def create_account(self, *, subscriber_email, agree_to_terms, account_key) -> AcmeAccount:
        self.accounts.append(account_key)
        return AcmeAccount(uri=f"https://ca.test/acct/{len(self.accounts)}", email=subscriber_email)

    def create_certificate(self, *, account, account_key, csr, domains, challenges) -> IssuedChain:
        self.seen_csrs.append(csr)
        plugin = challenges["dns-01"]
        plugin.init({"request": "fake"})
        placed = []
        try:
            for domain in plugin.zones(domains):
                challenge = Dns01Challenge(
                    identifier_value=domain,
                    dns_authorization=f"digest-{domain}-{len(self.issued)}",
                    dns_prefix="_acme-challenge",
                    dns_zone=domain,
                )
                placed.append(challenge)
                plugin.set(challenge)
            for challenge in placed:
                assert plugin.get(challenge) == challenge.dns_authorization
                self.validated.append(challenge.label)
            if self.fail_with is not None:
                raise self.fail_with
        finally:
            for challenge in placed:
                plugin.remove(challenge)

        request = x509.load_der_x509_csr(csr)
        self.issued.append(list(domains))
        return self.ca.issue(
            request.public_key(),
            list(domains),
            datetime.now(UTC) + self.validity,
        )


@pytest.fixture()
def fake_acme(test_ca) -> FakeAcmeClient:
    return FakeAcmeClient(test_ca)


# ---------------------------------------------------------------------------
# Identities and stored material
# ---------------------------------------------------------------------------


@pytest.fixture()
def identity() -> Identity:
    return Identity(
        name="www",
        email="ops@example.com",
        domains=("example.com", "www.example.com"),
        renewal_days=30,
        check_interval=timedelta(hours=24),
    )


@pytest.fixture()
def stored_material(test_ca):
    """Return a function writing a key/chain pair expiring at *not_after*."""
    from acmer.core.crypto import generate_private_key, private_key_to_pem  # noqa: PLC0415
    from acmer.models.certificate import CertificateMaterial  # noqa: PLC0415

    def _write(store, name: str, not_after: datetime, domains=("example.com",)):
        key = generate_private_key()
        issued = test_ca.issue(key.public_key(), list(domains), not_after)
        material = CertificateMaterial.from_pem(private_key_to_pem(key), issued.fullchain)
        store.write(name, material)
        return material, key

    return _write


# ---------------------------------------------------------------------------
# Config files
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_config_data() -> dict:
    """Return a dict containing the minimum required config fields."""
    return {
        "cert_dir": "/tmp/acmer-certs",
        "identities": [
            {
                "name": "www",
                "email": "ops@example.com",
                "domains": ["example.com", "www.example.com"],
            },
        ],
        "database": {"database": "acmer_test", "user": "acmer"},
    }


@pytest.fixture()
def tmp_config_file(tmp_path: Path, minimal_config_data: dict) -> Path:
    """Write *minimal_config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(minimal_config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


# ---------------------------------------------------------------------------
# ConfigKit singleton cleanup: autouse so every test gets a fresh slate
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fresh_config():
    """Reset the AcmerConfig singleton before and after every test."""
    from acmer.config.acmer_config import AcmerConfig

    AcmerConfig.reset()
    yield
    AcmerConfig.reset()


@pytest.fixture(autouse=True)
def restore_acmer_logger():
    """Undo configure_logging() so caplog keeps seeing acmer records."""
    import logging  # noqa: PLC0415

    logger = logging.getLogger("acmer")
    saved = (list(logger.handlers), logger.propagate, logger.level)
    yield
    logger.handlers[:] = saved[0]
    logger.propagate = saved[1]
    logger.setLevel(saved[2])


@pytest.fixture()
def storage_error() -> StorageUnavailable:
    return StorageUnavailable("record store offline")
