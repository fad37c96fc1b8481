"""ACME directory selection."""

from __future__ import annotations

PRODUCTION_DIRECTORY_URL = "https://acme-v02.api.letsencrypt.org/directory"
STAGING_DIRECTORY_URL = "https://acme-staging-v02.api.letsencrypt.org/directory"


def resolve_directory_url(custom_env_directory: str | None, *, production: bool) -> str:
    """Return the directory to use: the custom one, else production or staging."""
    if custom_env_directory:
        return custom_env_directory
    return PRODUCTION_DIRECTORY_URL if production else STAGING_DIRECTORY_URL
