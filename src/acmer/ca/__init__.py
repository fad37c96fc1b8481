"""ACME client capability and its ``acme``-library implementation."""

from acmer.ca.base import AcmeAccount, AcmeClient, IssuedChain, split_fullchain
from acmer.ca.directory import (
    PRODUCTION_DIRECTORY_URL,
    STAGING_DIRECTORY_URL,
    resolve_directory_url,
)

__all__ = [
    "PRODUCTION_DIRECTORY_URL",
    "STAGING_DIRECTORY_URL",
    "AcmeAccount",
    "AcmeClient",
    "IssuedChain",
    "resolve_directory_url",
    "split_fullchain",
]
