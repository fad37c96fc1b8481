"""ACME v2 client adapter built on the ``acme`` library.

Wire protocol work (JWS signing, nonces, polling) is delegated to
:class:`acme.client.ClientV2`; this module drives the DNS-01 order flow
through a :class:`~acmer.challenge.base.ChallengeFulfillmentPlugin`
and translates library failures into :class:`AcmeProtocolError`.
"""

from __future__ import annotations

import datetime
import logging
import time
import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from acme import challenges as acme_challenges
from acme import client, messages
from acme import errors as acme_errors

from acmer.ca.base import AcmeAccount, AcmeClient, IssuedChain, split_fullchain
from acmer.challenge.base import Dns01Challenge
from acmer.core.crypto import csr_der_to_pem
from acmer.core.domains import challenge_base
from acmer.core.errors import AcmeProtocolError, AcmerError
from acmer.core.types import ChallengeKind

if TYPE_CHECKING:
    import josepy as jose

    from acmer.challenge.base import ChallengeFulfillmentPlugin

log = logging.getLogger(__name__)

DEFAULT_FINALIZE_TIMEOUT = 300


def _is_retryable(exc: Exception) -> bool:
    """Guess whether an ACME failure is transient."""
    if isinstance(exc, (acme_errors.TimeoutError, acme_errors.BadNonce)):
        return True
    if isinstance(exc, messages.Error):
        return exc.code in {"rateLimited", "serverInternal", "badNonce"}
    exc_name = type(exc).__name__.lower()
    return any(p in exc_name for p in ("timeout", "connection"))


def _select_zone(base: str, zones: list[str]) -> str:
    """Return the longest zone in *zones* that contains *base*, else *base*."""
    matches = [z for z in zones if base == z or base.endswith(f".{z}")]
    return max(matches, key=len) if matches else base


class AcmeV2Client(AcmeClient):
    """:class:`AcmeClient` over RFC 8555 using ``acme.client.ClientV2``.

    Parameters
    ----------
    user_agent:
        User-Agent header sent with every request.
    finalize_timeout:
        Seconds to wait for authorizations and finalization.
    sleep:
        Called with the plugin's propagation delay; injectable for tests.
    network_factory:
        Builds the signed transport for an account key.

    """

    def __init__(
        self,
        *,
        user_agent: str = "acmer",
        finalize_timeout: int = DEFAULT_FINALIZE_TIMEOUT,
        sleep: Callable[[float], None] = time.sleep,
        network_factory: Callable[..., client.ClientNetwork] = client.ClientNetwork,
    ) -> None:
        self._user_agent = user_agent
        self._finalize_timeout = finalize_timeout
        self._sleep = sleep
        self._network_factory = network_factory
        self._directory_url: str | None = None

    def init(self, directory_url: str) -> None:
        self._directory_url = directory_url

    # -- accounts ------------------------------------------------------------

    def _connect(self, account_key: jose.JWK) -> client.ClientV2:
        if self._directory_url is None:
            msg = "ACME client not initialised; call init() first"
            raise AcmeProtocolError(msg, retryable=False)
        net = self._network_factory(account_key, user_agent=self._user_agent)
        log.info("Fetching ACME directory %s", self._directory_url)
        directory = client.ClientV2.get_directory(self._directory_url, net)
        return client.ClientV2(directory, net=net)

    def create_account(
        self,
        *,
        subscriber_email: str,
        agree_to_terms: bool,
        account_key: jose.JWK,
    ) -> AcmeAccount:
        try:
            acme = self._connect(account_key)
            try:
                regr = acme.new_account(
                    messages.NewRegistration.from_data(
                        email=subscriber_email,
                        terms_of_service_agreed=agree_to_terms,
                    ),
                )
                log.info("Registered ACME account %s", regr.uri)
            except acme_errors.ConflictError as conflict:
                # Key already registered: look the account up instead
                regr = acme.query_registration(
                    messages.RegistrationResource(
                        uri=conflict.location,
                        body=messages.Registration(),
                    ),
                )
                log.info("Reusing ACME account %s", regr.uri)
        except AcmerError:
            raise
        except Exception as exc:  # noqa: BLE001
            msg = f"ACME account creation failed ({type(exc).__name__}): {exc}"
            raise AcmeProtocolError(msg, retryable=_is_retryable(exc)) from exc
        return AcmeAccount(uri=regr.uri, email=subscriber_email, handle=acme)

    # -- certificates --------------------------------------------------------

    def create_certificate(
        self,
        *,
        account: AcmeAccount,
        account_key: jose.JWK,
        csr: bytes,
        domains: list[str],
        challenges: dict[str, ChallengeFulfillmentPlugin],
    ) -> IssuedChain:
        plugin = challenges.get(ChallengeKind.DNS_01.value)
        if plugin is None:
            msg = f"No {ChallengeKind.DNS_01.value} plugin supplied"
            raise AcmeProtocolError(msg, retryable=False)

        acme = account.handle if account.handle is not None else self._connect(account_key)
        try:
            fullchain_pem = self._run_order(acme, plugin, csr, domains)
        except AcmerError:
            raise
        except Exception as exc:  # noqa: BLE001
            msg = f"ACME certificate creation failed ({type(exc).__name__}): {exc}"
            raise AcmeProtocolError(msg, retryable=_is_retryable(exc)) from exc
        return split_fullchain(fullchain_pem)

    def _run_order(
        self,
        acme: client.ClientV2,
        plugin: ChallengeFulfillmentPlugin,
        csr: bytes,
        domains: list[str],
    ) -> str:
        """Order, publish proofs, validate, finalize.  Returns the PEM chain.

        Every challenge is appended to ``placed`` before ``set()`` is
        attempted, so the ``finally`` block removes whatever may have
        reached the store, including a write that failed half way.
        """
        plugin.init({"request": uuid.uuid4().hex[:12]})
        zones = plugin.zones(list(domains))

        orderr = acme.new_order(csr_der_to_pem(csr))
        log.info("Created order for %s", ", ".join(domains))

        placed: list[tuple[messages.ChallengeBody, Any, Dns01Challenge]] = []
        try:
            for authzr in orderr.authorizations:
                if authzr.body.status == messages.STATUS_VALID:
                    continue
                challb = self._select_dns01(authzr)
                response, validation = challb.response_and_validation(acme.net.key)
                challenge = self._build_challenge(
                    authzr.body.identifier.value,
                    challb,
                    validation,
                    zones,
                )
                placed.append((challb, response, challenge))
                plugin.set(challenge)

            if placed:
                log.info(
                    "Waiting %.1fs for %d record(s) to propagate",
                    plugin.propagation_delay,
                    len(placed),
                )
                self._sleep(plugin.propagation_delay)

            for _, _, challenge in placed:
                if plugin.get(challenge) != challenge.dns_authorization:
                    msg = f"TXT record {challenge.label} not visible after propagation delay"
                    raise AcmeProtocolError(msg)

            for challb, response, _ in placed:
                acme.answer_challenge(challb, response)

            deadline = datetime.datetime.now() + datetime.timedelta(
                seconds=self._finalize_timeout,
            )
            orderr = acme.poll_and_finalize(orderr, deadline)
        finally:
            self._cleanup(plugin, placed)

        log.info("Order finalized for %s", ", ".join(domains))
        return orderr.fullchain_pem

    @staticmethod
    def _cleanup(
        plugin: ChallengeFulfillmentPlugin,
        placed: list[tuple[Any, Any, Dns01Challenge]],
    ) -> None:
        """Remove every placed record; failures are logged, never raised."""
        for _, _, challenge in placed:
            try:
                plugin.remove(challenge)
            except Exception:  # noqa: BLE001
                log.warning(
                    "Could not remove TXT record %s",
                    challenge.label,
                    exc_info=True,
                )

    @staticmethod
    def _select_dns01(authzr: messages.AuthorizationResource) -> messages.ChallengeBody:
        for challb in authzr.body.challenges:
            if isinstance(challb.chall, acme_challenges.DNS01):
                return challb
        msg = f"CA offered no dns-01 challenge for {authzr.body.identifier.value}"
        raise AcmeProtocolError(msg, retryable=False)

    @staticmethod
    def _build_challenge(
        identifier: str,
        challb: messages.ChallengeBody,
        validation: str,
        zones: list[str],
    ) -> Dns01Challenge:
        base = challenge_base(identifier)
        dns_host = challb.chall.validation_domain_name(base)
        zone = _select_zone(base, zones)
        return Dns01Challenge(
            identifier_value=identifier,
            dns_authorization=validation,
            dns_host=dns_host,
            dns_prefix=dns_host[: -(len(zone) + 1)],
            dns_zone=zone,
            token=challb.chall.encode("token"),
        )
