"""acmer: DNS-01 certificate issuance and renewal manager."""

__version__ = "1.0.0"
