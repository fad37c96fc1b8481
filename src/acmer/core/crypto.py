"""Key, CSR and certificate helpers built on :mod:`cryptography`."""

from __future__ import annotations

from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from acmer.core.errors import CertificateParseError

if TYPE_CHECKING:
    from datetime import datetime

DEFAULT_KEY_SIZE = 2048
_PUBLIC_EXPONENT = 65537

# CN is limited to 64 characters (RFC 5280 upper bound ub-common-name)
_MAX_CN_LENGTH = 64


def generate_private_key(key_size: int = DEFAULT_KEY_SIZE) -> rsa.RSAPrivateKey:
    """Generate a fresh RSA private key."""
    return rsa.generate_private_key(public_exponent=_PUBLIC_EXPONENT, key_size=key_size)


def private_key_to_pem(key: rsa.RSAPrivateKey) -> str:
    """Serialise *key* as unencrypted PKCS#8 PEM text."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


def load_private_key(pem: str | bytes) -> rsa.RSAPrivateKey:
    """Parse a PEM private key.

    Raises
    ------
    CertificateParseError
        If the text is not a PEM private key.

    """
    data = pem.encode("ascii") if isinstance(pem, str) else pem
    try:
        return serialization.load_pem_private_key(data, password=None)  # type: ignore[return-value]
    except (ValueError, TypeError) as exc:
        msg = f"Private key could not be parsed: {exc}"
        raise CertificateParseError(msg) from exc


def build_csr(key: rsa.RSAPrivateKey, domains: list[str]) -> bytes:
    """Build a DER-encoded CSR for *domains* signed with *key*.

    *domains* must already be in ASCII-compatible form.  The first
    domain becomes the subject CN when it fits; every domain is listed
    in the subjectAltName extension.
    """
    if not domains:
        msg = "A CSR needs at least one domain"
        raise ValueError(msg)

    builder = x509.CertificateSigningRequestBuilder()
    if len(domains[0]) <= _MAX_CN_LENGTH:
        builder = builder.subject_name(
            x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domains[0])]),
        )
    else:
        builder = builder.subject_name(x509.Name([]))
    csr = builder.add_extension(
        x509.SubjectAlternativeName([x509.DNSName(d) for d in domains]),
        critical=False,
    ).sign(key, hashes.SHA256())
    return csr.public_bytes(serialization.Encoding.DER)


def csr_der_to_pem(der: bytes) -> bytes:
    """Re-encode a DER CSR as PEM, the form the ACME client expects."""
    csr = x509.load_der_x509_csr(der)
    return csr.public_bytes(serialization.Encoding.PEM)


def load_leaf_certificate(fullchain_pem: str) -> x509.Certificate:
    """Return the first (end-entity) certificate of a PEM chain.

    Raises
    ------
    CertificateParseError
        If no certificate can be parsed.

    """
    try:
        certs = x509.load_pem_x509_certificates(fullchain_pem.encode("ascii"))
    except (ValueError, UnicodeEncodeError) as exc:
        msg = f"Certificate chain could not be parsed: {exc}"
        raise CertificateParseError(msg) from exc
    if not certs:
        msg = "Certificate chain is empty"
        raise CertificateParseError(msg)
    return certs[0]


def leaf_not_after(fullchain_pem: str) -> datetime:
    """Return the end-entity certificate's ``notAfter`` as an aware UTC datetime."""
    return load_leaf_certificate(fullchain_pem).not_valid_after_utc
