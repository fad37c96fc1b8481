"""Local certificate material on disk.

Layout::

    <cert_dir>/<identity>/privkey.pem
    <cert_dir>/<identity>/fullchain.pem

Writes are staged in temporary files next to their targets and
published with :func:`os.replace`.  The old chain is unlinked before
the new key is published, and the new chain is published last, so a
crash at any point leaves either the previous pair, the new pair, or
a directory without ``fullchain.pem``, which the next check treats as
missing and reissues.
"""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from acmer.core.crypto import load_private_key
from acmer.core.errors import CertificateParseError, FilesystemError
from acmer.logging.sanitize import sanitize_pem
from acmer.models.certificate import CertificateMaterial

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric import rsa

log = logging.getLogger(__name__)

PRIVKEY_FILENAME = "privkey.pem"
FULLCHAIN_FILENAME = "fullchain.pem"

_KEY_MODE = 0o600
_CHAIN_MODE = 0o644


class CertificateStore:
    """Reads and writes key/chain pairs under a root directory."""

    def __init__(self, cert_dir: str | Path) -> None:
        self._root = Path(cert_dir)

    @property
    def root(self) -> Path:
        return self._root

    def identity_dir(self, name: str) -> Path:
        return self._root / name

    def key_path(self, name: str) -> Path:
        return self.identity_dir(name) / PRIVKEY_FILENAME

    def chain_path(self, name: str) -> Path:
        return self.identity_dir(name) / FULLCHAIN_FILENAME

    def prepare(self, name: str) -> Path:
        """Create the identity directory if needed and return it."""
        directory = self.identity_dir(name)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            msg = f"Cannot create certificate directory {directory}: {exc}"
            raise FilesystemError(msg) from exc
        return directory

    # -- reads ---------------------------------------------------------------

    def read(self, name: str) -> CertificateMaterial | None:
        """Return the stored material, or ``None`` when it is missing or unusable."""
        key_path = self.key_path(name)
        chain_path = self.chain_path(name)
        if not key_path.is_file():
            log.info("Private key %s not found", key_path, extra={"identity": name})
            return None
        if not chain_path.is_file():
            log.info("Certificate chain %s not found", chain_path, extra={"identity": name})
            return None

        try:
            key_pem = key_path.read_text(encoding="ascii")
            chain_pem = chain_path.read_text(encoding="ascii")
        except UnicodeDecodeError as exc:
            # PEM is ASCII; anything else is corruption, not an I/O failure
            log.warning(
                "Certificate material for %s is not PEM text, treating as missing: %s",
                name,
                exc,
                extra={"identity": name},
            )
            return None
        except OSError as exc:
            msg = f"Cannot read certificate material for {name!r}: {exc}"
            raise FilesystemError(msg) from exc

        try:
            return CertificateMaterial.from_pem(key_pem, chain_pem)
        except CertificateParseError as exc:
            log.warning(
                "Certificate chain %s is unusable, treating as missing: %s",
                chain_path,
                exc.detail,
                extra={"identity": name},
            )
            log.debug("Unparseable chain content: %s", sanitize_pem(chain_pem))
            return None

    def read_private_key(self, name: str) -> rsa.RSAPrivateKey | None:
        """Return the stored subject key, or ``None`` if absent or unreadable."""
        key_path = self.key_path(name)
        if not key_path.is_file():
            return None
        try:
            return load_private_key(key_path.read_bytes())
        except OSError as exc:
            msg = f"Cannot read private key {key_path}: {exc}"
            raise FilesystemError(msg) from exc
        except CertificateParseError as exc:
            log.warning(
                "Private key %s is unusable, a new one will be generated: %s",
                key_path,
                exc.detail,
                extra={"identity": name},
            )
            return None

    # -- writes --------------------------------------------------------------

    def write(self, name: str, material: CertificateMaterial) -> None:
        """Replace the stored pair with *material*."""
        directory = self.prepare(name)
        staged: list[Path] = []
        try:
            key_tmp = self._stage(directory, material.private_key_pem, _KEY_MODE)
            staged.append(key_tmp)
            chain_tmp = self._stage(directory, material.fullchain_pem, _CHAIN_MODE)
            staged.append(chain_tmp)

            self.chain_path(name).unlink(missing_ok=True)
            os.replace(key_tmp, self.key_path(name))
            staged.remove(key_tmp)
            os.replace(chain_tmp, self.chain_path(name))
            staged.remove(chain_tmp)
        except OSError as exc:
            msg = f"Cannot write certificate material for {name!r}: {exc}"
            raise FilesystemError(msg) from exc
        finally:
            for leftover in staged:
                with contextlib.suppress(OSError):
                    leftover.unlink()
        log.info(
            "Stored certificate for %s (expires %s)",
            name,
            material.not_after.isoformat(),
            extra={"identity": name},
        )

    def delete(self, name: str) -> None:
        """Remove the stored pair, chain first."""
        try:
            self.chain_path(name).unlink(missing_ok=True)
            self.key_path(name).unlink(missing_ok=True)
        except OSError as exc:
            msg = f"Cannot delete certificate material for {name!r}: {exc}"
            raise FilesystemError(msg) from exc
        log.info("Deleted certificate material for %s", name, extra={"identity": name})

    @staticmethod
    def _stage(directory: Path, content: str, mode: int) -> Path:
        fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=".", suffix=".tmp")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="ascii") as fh:
                fh.write(content)
                fh.flush()
                os.fsync(fh.fileno())
            tmp_path.chmod(mode)
        except BaseException:
            with contextlib.suppress(OSError):
                tmp_path.unlink()
            raise
        return tmp_path
