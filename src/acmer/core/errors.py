"""Exception hierarchy for acmer.

Every failure raised by an acmer component derives from
:class:`AcmerError`.  Adapters around third-party libraries re-raise
``AcmerError`` subclasses untouched and wrap anything else with
``raise ... from exc`` so the original traceback survives.
"""

from __future__ import annotations


class AcmerError(Exception):
    """Base class for acmer failures.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    retryable:
        Whether the failure is transient and the next scheduled cycle
        may succeed.

    """

    def __init__(self, detail: str, *, retryable: bool = False) -> None:
        self.detail = detail
        self.retryable = retryable
        super().__init__(detail)


class ConfigValidationError(AcmerError):
    """Raised when configuration or identity validation finds problems."""

    def __init__(self, errors: list[str]) -> None:
        """Store *errors* and build a human-readable message."""
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


class StorageUnavailable(AcmerError):
    """The record store rejected or failed a read or write."""

    def __init__(self, detail: str, *, retryable: bool = True) -> None:
        super().__init__(detail, retryable=retryable)


class AcmeProtocolError(AcmerError):
    """Account or certificate creation failed at the ACME server."""

    def __init__(self, detail: str, *, retryable: bool = True) -> None:
        super().__init__(detail, retryable=retryable)


class CertificateParseError(AcmerError):
    """Stored or issued certificate material could not be parsed."""


class FilesystemError(AcmerError):
    """Reading, writing or deleting certificate material failed."""

    def __init__(self, detail: str, *, retryable: bool = True) -> None:
        super().__init__(detail, retryable=retryable)


class PluginSelfTestError(AcmerError):
    """A challenge plugin violated its set/get/remove contract."""
