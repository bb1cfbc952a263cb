"""Deterministic email fingerprints — HMAC-SHA256 over the normalized address.

The fingerprint is what goes into unique / lookup columns.  It is stable for
a given key and address, and cannot be turned back into the address.
"""

from __future__ import annotations
import hashlib
import hmac

from .keys import KeyProvider
from .normalize import normalize_email

FINGERPRINT_HEX_LEN = 64


def fingerprint_email(email: str | None, secret: bytes) -> str:
    """Lowercase hex HMAC-SHA256 of ``normalize_email(email)``."""
    norm = normalize_email(email)
    return hmac.new(secret, norm.encode("utf-8"), hashlib.sha256).hexdigest()


class Fingerprinter:
    """Binds ``fingerprint_email`` to a key provider."""

    __slots__ = ("_keys",)

    def __init__(self, keys: KeyProvider) -> None:
        self._keys = keys

    def __call__(self, email: str | None) -> str:
        return fingerprint_email(email, self._keys.hmac_secret())

    def matches(self, email: str | None, fingerprint_hex: str) -> bool:
        """Constant-time check of ``email`` against a stored fingerprint."""
        return hmac.compare_digest(
            self(email).encode("ascii"), fingerprint_hex.lower().encode("utf-8")
        )
