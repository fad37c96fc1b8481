"""Logging configuration and redaction helpers."""

from acmer.logging.sanitize import mask_digest, sanitize_jwk, sanitize_pem
from acmer.logging.setup import (
    IdentityContextFilter,
    StructuredFormatter,
    TextFormatter,
    configure_logging,
)

__all__ = [
    "IdentityContextFilter",
    "StructuredFormatter",
    "TextFormatter",
    "configure_logging",
    "mask_digest",
    "sanitize_jwk",
    "sanitize_pem",
]
