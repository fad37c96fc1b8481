"""Tests for RecordStorePlugin, the DNS-01 plugin over the shared record table."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from acmer.challenge.base import ChallengeFulfillmentPlugin, Dns01Challenge
from acmer.challenge.record_store import RecordStorePlugin
from acmer.core.errors import StorageUnavailable
from acmer.core.types import RecordType
from acmer.models.record import ChallengeRecord

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _challenge(digest: str = "digest-1", **kwargs) -> Dns01Challenge:
    fields = {
        "identifier_value": "www.example.com",
        "dns_authorization": digest,
        "dns_prefix": "_acme-challenge.www",
        "dns_zone": "example.com",
    }
    fields.update(kwargs)
    return Dns01Challenge(**fields)


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


class TestInterface:
    def test_is_a_fulfillment_plugin(self, record_repo):
        assert isinstance(RecordStorePlugin(record_repo), ChallengeFulfillmentPlugin)

    def test_abc_cannot_be_instantiated(self):
        with pytest.raises(TypeError):
            ChallengeFulfillmentPlugin()  # type: ignore[abstract]

    def test_default_propagation_delay_is_five_seconds(self, record_repo):
        assert RecordStorePlugin(record_repo).propagation_delay == 5.0

    def test_propagation_delay_configurable(self, record_repo):
        assert RecordStorePlugin(record_repo, propagation_delay=0.5).propagation_delay == 0.5

    def test_zones_is_pass_through(self, record_repo):
        hosts = ["example.com", "www.example.com"]
        assert RecordStorePlugin(record_repo).zones(hosts) == hosts

    def test_init_only_stores_context(self, record_repo):
        plugin = RecordStorePlugin(record_repo)
        plugin.init({"request": "abc123"})
        assert plugin.request_id == "abc123"
        assert record_repo.records == []


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------


class TestLabel:
    def test_dns_host_wins(self):
        challenge = _challenge(dns_host="_acme-challenge.www.example.com", dns_prefix="x")
        assert challenge.label == "_acme-challenge.www.example.com"

    def test_prefix_and_zone_joined(self):
        assert _challenge().label == "_acme-challenge.www.example.com"

    def test_missing_parts_rejected(self):
        challenge = Dns01Challenge(identifier_value="example.com", dns_authorization="d")
        with pytest.raises(ValueError, match="neither dns_host"):
            _ = challenge.label


# ---------------------------------------------------------------------------
# set / get / remove
# ---------------------------------------------------------------------------


class TestSetGet:
    def test_set_writes_txt_record_with_label_and_digest(self, record_repo):
        plugin = RecordStorePlugin(record_repo, ttl=600)
        plugin.set(_challenge())

        [record] = record_repo.records
        assert record.name == "_acme-challenge.www.example.com"
        assert record.type is RecordType.TXT
        assert record.data == "digest-1"
        assert record.ttl == 600

    def test_get_after_set_returns_digest(self, record_repo):
        plugin = RecordStorePlugin(record_repo)
        challenge = _challenge()
        plugin.set(challenge)
        assert plugin.get(challenge) == "digest-1"

    def test_get_with_other_digest_is_not_found(self, record_repo):
        plugin = RecordStorePlugin(record_repo)
        plugin.set(_challenge("digest-1"))
        assert plugin.get(_challenge("digest-2")) is None

    def test_get_before_set_is_not_found(self, record_repo):
        assert RecordStorePlugin(record_repo).get(_challenge()) is None

    def test_set_is_idempotent(self, record_repo):
        plugin = RecordStorePlugin(record_repo)
        plugin.set(_challenge())
        plugin.set(_challenge())
        assert len(record_repo.records) == 1


class TestSetFailures:
    def test_storage_exception_becomes_storage_unavailable(self, record_repo):
        record_repo.fail_upsert = ConnectionError("connection refused")
        plugin = RecordStorePlugin(record_repo)

        with pytest.raises(StorageUnavailable, match="connection refused") as exc_info:
            plugin.set(_challenge())
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert exc_info.value.retryable is True

    def test_unconfirmed_write_raises(self, record_repo):
        record_repo.unconfirmed = True
        with pytest.raises(StorageUnavailable, match="did not confirm"):
            RecordStorePlugin(record_repo).set(_challenge())

    def test_storage_unavailable_passes_through_untouched(self, record_repo, storage_error):
        record_repo.fail_upsert = storage_error
        with pytest.raises(StorageUnavailable) as exc_info:
            RecordStorePlugin(record_repo).set(_challenge())
        assert exc_info.value is storage_error

    def test_get_failure_raises(self):
        repo = MagicMock()
        repo.find_one.side_effect = OSError("timeout")
        with pytest.raises(StorageUnavailable):
            RecordStorePlugin(repo).get(_challenge())

    def test_remove_failure_raises(self):
        repo = MagicMock()
        repo.delete_one.side_effect = OSError("timeout")
        with pytest.raises(StorageUnavailable):
            RecordStorePlugin(repo).remove(_challenge())


class TestRemove:
    def test_removes_exactly_the_matching_record(self, record_repo):
        plugin = RecordStorePlugin(record_repo)
        mine = _challenge("digest-mine")
        same_name_other_digest = _challenge("digest-theirs")
        other_name_same_digest = _challenge("digest-mine", dns_prefix="_acme-challenge.api")
        for c in (mine, same_name_other_digest, other_name_same_digest):
            plugin.set(c)

        assert plugin.remove(mine) == 1

        assert plugin.get(mine) is None
        assert plugin.get(same_name_other_digest) == "digest-theirs"
        assert plugin.get(other_name_same_digest) == "digest-mine"
        assert len(record_repo.records) == 2

    def test_remove_missing_record_is_zero(self, record_repo):
        assert RecordStorePlugin(record_repo).remove(_challenge()) == 0

    def test_predicates_always_include_digest(self):
        repo = MagicMock()
        repo.upsert.return_value = ChallengeRecord(name="n", data="digest-1")
        repo.delete_one.return_value = 1
        plugin = RecordStorePlugin(repo)
        challenge = _challenge()

        plugin.set(challenge)
        plugin.get(challenge)
        plugin.remove(challenge)

        label = "_acme-challenge.www.example.com"
        repo.find_one.assert_called_once_with(label, RecordType.TXT, "digest-1")
        repo.delete_one.assert_called_once_with(label, RecordType.TXT, "digest-1")
