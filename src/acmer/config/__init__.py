"""Configuration subsystem for acmer.

Public API::

    from acmer.config import get_config, AcmerConfig

    # At startup (CLI only):
    AcmerConfig(config_file="config.yaml")

    # Everywhere else:
    cfg = get_config()
    names = [i.name for i in cfg.settings.identities]
"""

from acmer.config.acmer_config import (
    AcmerConfig,
    get_config,
)
from acmer.config.settings import (
    AcmerSettings,
    AcmeSettings,
    ChallengeSettings,
    DatabaseSettings,
    IdentitySettings,
    LoggingSettings,
    build_settings,
)
from acmer.core.errors import ConfigValidationError

__all__ = [
    "AcmeSettings",
    "AcmerConfig",
    "AcmerSettings",
    "ChallengeSettings",
    "ConfigValidationError",
    "DatabaseSettings",
    "IdentitySettings",
    "LoggingSettings",
    "build_settings",
    "get_config",
]
