"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders are
what the application actually reads.

Access pattern::

    from acmer.config import get_config

    db = get_config().settings.database
    print(db.host, db.port)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from acmer.models.identity import DEFAULT_RENEWAL_DAYS, Identity
from acmer.models.record import DEFAULT_RECORD_TTL

_DEFAULT_CHECK_INTERVAL_SECONDS = 86400

# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IdentitySettings:
    """One managed identity and its renewal schedule."""

    name: str
    email: str
    domains: tuple[str, ...]
    renewal_days: int
    check_interval_seconds: int
    production: bool
    custom_env_directory: str | None
    no_auto_start: bool

    def to_identity(self) -> Identity:
        return Identity(
            name=self.name,
            email=self.email,
            domains=self.domains,
            renewal_days=self.renewal_days,
            check_interval=timedelta(seconds=self.check_interval_seconds),
        )


def _build_identity(data: dict) -> IdentitySettings:
    return IdentitySettings(
        name=data["name"],
        email=data["email"],
        domains=tuple(data.get("domains", [])),
        renewal_days=data.get("renewal_days", DEFAULT_RENEWAL_DAYS),
        check_interval_seconds=data.get(
            "check_interval_seconds",
            _DEFAULT_CHECK_INTERVAL_SECONDS,
        ),
        production=data.get("production", False),
        custom_env_directory=data.get("custom_env_directory"),
        no_auto_start=data.get("no_auto_start", False),
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """PostgreSQL connection and pool settings.

    ``connection_string`` (a libpq conninfo string or URI) takes
    precedence over the discrete host/port/database fields when set.
    """

    connection_string: str | None
    host: str
    port: int
    database: str
    user: str
    password: str
    sslmode: str
    min_connections: int
    max_connections: int
    connection_timeout: float
    auto_setup: bool


def _build_database(data: dict | None) -> DatabaseSettings:
    d = data or {}
    return DatabaseSettings(
        connection_string=d.get("connection_string"),
        host=d.get("host", "localhost"),
        port=d.get("port", 5432),
        database=d.get("database", ""),
        user=d.get("user", ""),
        password=d.get("password", ""),
        sslmode=d.get("sslmode", "prefer"),
        min_connections=d.get("min_connections", 1),
        max_connections=d.get("max_connections", 5),
        connection_timeout=d.get("connection_timeout", 30.0),
        auto_setup=d.get("auto_setup", True),
    )


# ---------------------------------------------------------------------------
# ACME client
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AcmeSettings:
    """Settings shared by every identity's ACME client."""

    user_agent: str
    key_size: int
    finalize_timeout_seconds: int


def _build_acme(data: dict | None) -> AcmeSettings:
    d = data or {}
    return AcmeSettings(
        user_agent=d.get("user_agent", "acmer"),
        key_size=d.get("key_size", 2048),
        finalize_timeout_seconds=d.get("finalize_timeout_seconds", 300),
    )


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChallengeSettings:
    """DNS-01 record store behaviour."""

    propagation_delay_seconds: float
    record_ttl: int


def _build_challenges(data: dict | None) -> ChallengeSettings:
    d = data or {}
    return ChallengeSettings(
        propagation_delay_seconds=d.get("propagation_delay_seconds", 5.0),
        record_ttl=d.get("record_ttl", DEFAULT_RECORD_TTL),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    """Log level and output format."""

    level: str
    format: str


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "text"),
    )


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AcmerSettings:
    """Root settings tree."""

    cert_dir: str
    identities: tuple[IdentitySettings, ...]
    database: DatabaseSettings
    acme: AcmeSettings
    challenges: ChallengeSettings
    logging: LoggingSettings

    def identity(self, name: str) -> IdentitySettings:
        """Return the identity called *name*, raising :class:`KeyError` if absent."""
        for entry in self.identities:
            if entry.name == name:
                return entry
        raise KeyError(name)


def build_settings(data: dict[str, Any]) -> AcmerSettings:
    """Build the typed settings tree from a validated config dict."""
    return AcmerSettings(
        cert_dir=data.get("cert_dir", "certs"),
        identities=tuple(_build_identity(entry) for entry in data.get("identities", [])),
        database=_build_database(data.get("database")),
        acme=_build_acme(data.get("acme")),
        challenges=_build_challenges(data.get("challenges")),
        logging=_build_logging(data.get("logging")),
    )
