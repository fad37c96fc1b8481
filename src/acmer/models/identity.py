"""Identity entity: the unit a lifecycle manager renews certificates for."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta

from acmer.core.errors import ConfigValidationError

DEFAULT_RENEWAL_DAYS = 30
DEFAULT_CHECK_INTERVAL = timedelta(hours=24)


@dataclass(frozen=True)
class Identity:
    """A named ACME subscriber and the domains it holds a certificate for.

    Raises :class:`ConfigValidationError` on construction when a
    required field is missing, so no manager can be built around an
    unusable identity.
    """

    name: str
    email: str
    domains: tuple[str, ...]
    renewal_days: int = DEFAULT_RENEWAL_DAYS
    check_interval: timedelta = field(default=DEFAULT_CHECK_INTERVAL)

    def __post_init__(self) -> None:
        # Accept any sequence but store an immutable tuple
        object.__setattr__(self, "domains", tuple(self.domains or ()))

        errors: list[str] = []
        if not self.name:
            errors.append("identity name is required")
        elif "/" in self.name or self.name in {".", ".."}:
            errors.append(f"identity name {self.name!r} is not a valid directory name")
        if not self.email:
            errors.append(f"identity {self.name!r}: email is required")
        if not self.domains:
            errors.append(f"identity {self.name!r}: at least one domain is required")
        elif not all(isinstance(d, str) and d for d in self.domains):
            errors.append(f"identity {self.name!r}: domains must be non-empty strings")
        if self.renewal_days < 0:
            errors.append(f"identity {self.name!r}: renewal_days must be >= 0")
        if self.check_interval <= timedelta(0):
            errors.append(f"identity {self.name!r}: check_interval must be positive")
        if errors:
            raise ConfigValidationError(errors)
