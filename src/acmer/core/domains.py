"""Hostname normalisation to ASCII-compatible (A-label) form."""

from __future__ import annotations

from acmer.core.errors import ConfigValidationError

_MAX_LABEL_LENGTH = 63
_WILDCARD_LABEL = "*"


def to_ascii(value: str) -> str:
    """Normalize a hostname to its A-label (punycode) form.

    ASCII names are returned lowercased.  Non-ASCII labels are encoded
    via IDNA (RFC 3490), which also applies nameprep case folding.  A
    leading ``*`` wildcard label is preserved.

    Raises
    ------
    ConfigValidationError
        If a label cannot be encoded or exceeds 63 octets.

    """
    name = value.strip().rstrip(".")
    if not name:
        raise ConfigValidationError([f"Empty domain name {value!r}"])

    encoded_parts: list[str] = []
    for part in name.split("."):
        if part == _WILDCARD_LABEL:
            encoded_parts.append(part)
            continue
        if part.isascii():
            encoded = part.lower()
        else:
            try:
                encoded = part.encode("idna").decode("ascii")
            except UnicodeError as err:
                raise ConfigValidationError(
                    [f"Invalid internationalized domain label '{part}' in '{value}'"],
                ) from err
        # RFC 1035 §2.3.4: each label must be 63 octets or less
        if not encoded or len(encoded) > _MAX_LABEL_LENGTH:
            raise ConfigValidationError(
                [
                    f"Domain label '{part}' in '{value}' must be between 1 and "
                    f"{_MAX_LABEL_LENGTH} octets once encoded",
                ],
            )
        encoded_parts.append(encoded)
    return ".".join(encoded_parts)


def normalize_domains(domains: list[str] | tuple[str, ...]) -> list[str]:
    """Encode every domain with :func:`to_ascii`, keeping order and dropping repeats."""
    result: list[str] = []
    for domain in domains:
        encoded = to_ascii(domain)
        if encoded not in result:
            result.append(encoded)
    return result


def challenge_base(identifier: str) -> str:
    """Return the name a DNS-01 proof is published under for *identifier*.

    Wildcard identifiers are validated at their base domain.
    """
    if identifier.startswith("*."):
        return identifier[2:]
    return identifier
