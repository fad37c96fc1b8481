"""acmer configuration loader built on ConfigKit.

Lifecycle::

    # 1. CLI creates the singleton (once, at startup)
    AcmerConfig(config_file="/etc/acmer/config.yaml")

    # 2. Any module retrieves it afterwards
    from acmer.config import get_config
    cfg = get_config()
    cfg.settings.cert_dir  # typed access

    # 3. Dynamic access
    cfg.get("challenges.record_ttl", default=14400)
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from configkit import ConfigKit, ConfigKitMeta

from acmer.config.settings import AcmerSettings, build_settings
from acmer.core.errors import ConfigValidationError

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singleton reference
# ---------------------------------------------------------------------------
_instance: AcmerConfig | None = None


def get_config() -> AcmerConfig:
    """Return the initialised configuration singleton.

    Raises :class:`RuntimeError` if :class:`AcmerConfig` has not been
    created yet (i.e. the CLI entry point has not run).
    """
    if _instance is None:
        msg = (
            "Configuration not initialised. "
            "AcmerConfig must be created with config_file= before calling get_config()."
        )
        raise RuntimeError(msg)
    return _instance


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = os.environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(
    data: Any,  # noqa: ANN401
    path: str = "",
) -> None:
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, child_path)


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class AcmerConfig(ConfigKit):
    """Central configuration for an acmer process.

    Subclasses :class:`configkit.ConfigKit`.  The JSON schema is
    bundled at ``config/schema.json``; users supply only ``config_file``.

    After construction the typed settings tree is available at
    :pyattr:`settings` and the raw dict via :pyattr:`data` /
    :pymeth:`get`.
    """

    def __init__(
        self,
        *,
        config_file: str | Path,
        schema_file: str | Path | None = None,  # noqa: ARG002
    ) -> None:
        """Initialise the configuration singleton.

        Parameters
        ----------
        config_file:
            Path to the YAML/JSON configuration file.
        schema_file:
            Ignored.  Exists only to satisfy the
            :class:`ConfigKitMeta` singleton guard.

        """
        global _instance  # noqa: PLW0603

        super().__init__(
            config_file=config_file,
            schema_file=_SCHEMA_PATH,
        )

        self._settings: AcmerSettings = build_settings(self.data)
        _instance = self

    # -- lifecycle overrides ------------------------------------------------

    def _load(self) -> None:
        """Load config file then resolve ``${VAR}`` env-var references.

        Runs env-var resolution **before** schema validation so that
        substituted values are checked against the schema too.
        """
        super()._load()
        _resolve_env_vars(self._data)  # noqa: SLF001

    # -- typed access -------------------------------------------------------

    @property
    def settings(self) -> AcmerSettings:
        """Fully-typed, frozen settings tree."""
        return self._settings

    # -- cross-field validation ---------------------------------------------

    def additional_checks(self) -> None:  # noqa: C901
        """Semantic & cross-field validation.

        Called automatically by ConfigKit **after** schema validation
        passes.
        """
        errors: list[str] = []
        warnings: list[str] = []

        # -- identities --
        seen: set[str] = set()
        for idx, entry in enumerate(self.data.get("identities") or []):
            name = entry.get("name", "")
            if name in seen:
                errors.append(f"identities[{idx}].name '{name}' is used more than once")
            seen.add(name)
            if "/" in name or name in {".", ".."}:
                errors.append(
                    f"identities[{idx}].name '{name}' must be usable as a directory name",
                )

            custom = entry.get("custom_env_directory")
            if custom:
                if urlparse(custom).scheme != "https":
                    errors.append(
                        f"identities[{idx}].custom_env_directory must be an https URL "
                        f"(got '{custom}')",
                    )
                if entry.get("production"):
                    warnings.append(
                        f"identities[{idx}] sets both production and "
                        "custom_env_directory; the custom directory wins",
                    )

            domains = entry.get("domains") or []
            if len({d.lower() for d in domains}) != len(domains):
                warnings.append(
                    f"identities[{idx}].domains contains duplicates; "
                    "they are requested once",
                )

        # -- database --
        db = self.data.get("database") or {}
        if not db.get("connection_string") and not db.get("database"):
            errors.append(
                "database.connection_string or database.database is required",
            )
        min_conn = db.get("min_connections", 1)
        max_conn = db.get("max_connections", 5)
        if min_conn > max_conn:
            errors.append(
                f"database.min_connections ({min_conn}) must be <= "
                f"database.max_connections ({max_conn})",
            )
        identity_count = len(self.data.get("identities") or [])
        if max_conn < identity_count:
            warnings.append(
                f"database.max_connections ({max_conn}) is lower than the number "
                f"of identities ({identity_count}); concurrent issuances will "
                "queue for connections",
            )

        for w in warnings:
            log.warning("Config warning: %s", w)

        if errors:
            raise ConfigValidationError(errors)

    # -- helpers ------------------------------------------------------------

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton -- testing only."""
        global _instance  # noqa: PLW0603
        _instance = None
        ConfigKitMeta.reset()

    def __repr__(self) -> str:
        source = self.data.get("_source", "?")
        return f"<AcmerConfig config_file={source}>"
