"""Contract self-test for challenge plugins.

Runs a disposable proof through a plugin and checks that it can be
published, read back, told apart from a different digest and removed.
Useful before the first real issuance against a new record store.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import secrets
from dataclasses import replace
from typing import TYPE_CHECKING

from acmer.challenge.base import Dns01Challenge
from acmer.core.domains import to_ascii
from acmer.core.errors import PluginSelfTestError

if TYPE_CHECKING:
    from acmer.challenge.base import ChallengeFulfillmentPlugin

log = logging.getLogger(__name__)

_CHALLENGE_PREFIX = "_acme-challenge"


def _random_digest() -> str:
    raw = hashlib.sha256(secrets.token_bytes(32)).digest()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def selftest_zone(plugin: ChallengeFulfillmentPlugin, domain: str) -> Dns01Challenge:
    """Exercise *plugin* against *domain*.

    Returns the challenge that was used.  Anything written is removed
    again before returning, whether the test passes or not.

    Raises
    ------
    PluginSelfTestError
        On the first contract violation.

    """
    zone = to_ascii(domain)
    token = secrets.token_urlsafe(16)
    plugin.init({"request": f"selftest-{token[:8]}"})

    zones = plugin.zones([zone])
    if zone not in zones:
        msg = f"zones() did not return {zone!r} (got {zones!r})"
        raise PluginSelfTestError(msg)

    challenge = Dns01Challenge(
        identifier_value=zone,
        dns_authorization=_random_digest(),
        dns_prefix=_CHALLENGE_PREFIX,
        dns_zone=zone,
        token=token,
    )
    other = replace(challenge, dns_authorization=_random_digest())

    plugin.set(challenge)
    try:
        found = plugin.get(challenge)
        if found != challenge.dns_authorization:
            msg = f"get() after set() returned {found!r} for {challenge.label}"
            raise PluginSelfTestError(msg)
        if plugin.get(other) is not None:
            msg = f"get() matched a different digest for {challenge.label}"
            raise PluginSelfTestError(msg)
    except Exception:
        # Keep the original failure; a cleanup error is only logged
        try:
            plugin.remove(challenge)
        except Exception:  # noqa: BLE001
            log.warning("Could not remove self-test record %s", challenge.label, exc_info=True)
        raise

    removed = plugin.remove(challenge)

    if removed != 1:
        msg = f"remove() deleted {removed} records for {challenge.label}, expected 1"
        raise PluginSelfTestError(msg)
    if plugin.get(challenge) is not None:
        msg = f"record {challenge.label} still visible after remove()"
        raise PluginSelfTestError(msg)

    log.info("Plugin self-test passed for %s", zone)
    return challenge
