"""Wire settings and a database handle into lifecycle managers.

Usage::

    from acmer.config import get_config
    from acmer.db import init_database
    from acmer.app import create_managers

    settings = get_config().settings
    db = init_database(settings.database)
    managers = create_managers(settings, db)
"""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING

from acmer.ca.acme_v2 import AcmeV2Client
from acmer.ca.directory import resolve_directory_url
from acmer.challenge.record_store import RecordStorePlugin
from acmer.events import EventBus
from acmer.repositories.account import AccountKeyRepository
from acmer.repositories.record import DnsRecordRepository
from acmer.services.account_key import AccountKeyStore
from acmer.services.certificate_store import CertificateStore
from acmer.services.lifecycle import CertificateLifecycleManager

if TYPE_CHECKING:
    from pypgkit import Database

    from acmer.config.settings import AcmerSettings, ChallengeSettings

log = logging.getLogger(__name__)


def create_plugin_factory(
    records: DnsRecordRepository,
    settings: ChallengeSettings,
) -> partial[RecordStorePlugin]:
    """Return a callable producing a fresh record-store plugin per issuance."""
    return partial(
        RecordStorePlugin,
        records,
        propagation_delay=settings.propagation_delay_seconds,
        ttl=settings.record_ttl,
    )


def create_managers(
    settings: AcmerSettings,
    database: Database,
    *,
    auto_start: bool | None = None,
    events: EventBus | None = None,
    names: list[str] | None = None,
) -> list[CertificateLifecycleManager]:
    """Build one manager per configured identity.

    Parameters
    ----------
    settings:
        Loaded settings tree.
    database:
        Initialised record store handle shared by every manager.
    auto_start:
        Overrides each identity's ``no_auto_start`` when not ``None``.
    events:
        Event bus shared by the managers; a new one when ``None``.
    names:
        Restrict to these identity names.

    """
    events = events if events is not None else EventBus()
    records = DnsRecordRepository(database)
    account_keys = AccountKeyStore(AccountKeyRepository(database), key_size=settings.acme.key_size)
    certificates = CertificateStore(settings.cert_dir)
    plugin_factory = create_plugin_factory(records, settings.challenges)
    client_factory = partial(
        AcmeV2Client,
        user_agent=settings.acme.user_agent,
        finalize_timeout=settings.acme.finalize_timeout_seconds,
    )

    managers: list[CertificateLifecycleManager] = []
    for entry in settings.identities:
        if names is not None and entry.name not in names:
            continue
        directory_url = resolve_directory_url(
            entry.custom_env_directory,
            production=entry.production,
        )
        log.info("Identity %s uses ACME directory %s", entry.name, directory_url)
        managers.append(
            CertificateLifecycleManager(
                entry.to_identity(),
                certificates=certificates,
                account_keys=account_keys,
                acme_client_factory=client_factory,
                plugin_factory=plugin_factory,
                directory_url=directory_url,
                key_size=settings.acme.key_size,
                events=events,
                auto_start=(not entry.no_auto_start) if auto_start is None else auto_start,
            ),
        )
    return managers
