"""Redaction helpers for log output.

Account keys and certificate material must never reach a log line in
full.  These helpers keep just enough metadata to tell records apart.
"""

from __future__ import annotations

import re

# JWK fields that contain raw key material
_JWK_SECRET_FIELDS = frozenset({"n", "e", "x", "y", "d", "p", "q", "dp", "dq", "qi", "k"})

_PEM_BODY_RE = re.compile(
    r"(-----BEGIN [A-Z0-9 ]+-----)"
    r"([\s\S]*?)"
    r"(-----END [A-Z0-9 ]+-----)",
)

_DIGEST_PREFIX = 8


def sanitize_jwk(jwk: dict) -> dict:
    """Return a copy of *jwk* with key material replaced by ``[REDACTED]``."""
    return {
        key: "[REDACTED]" if key in _JWK_SECRET_FIELDS else value for key, value in jwk.items()
    }


def sanitize_pem(pem: str) -> str:
    """Replace the base64 body of PEM blocks with ``[REDACTED]``."""
    return _PEM_BODY_RE.sub(lambda m: f"{m.group(1)}\n[REDACTED]\n{m.group(3)}", pem)


def mask_digest(digest: str) -> str:
    """Shorten a key-authorization digest to a recognisable prefix."""
    if len(digest) <= _DIGEST_PREFIX:
        return digest
    return f"{digest[:_DIGEST_PREFIX]}..."
