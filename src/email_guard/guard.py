"""EmailGuard — one object for everything an application does with an email.

Usage:

    guard = EmailGuard.from_env()

    # Registration: store both fields, never the plaintext
    fields = guard.protect(" Alice@Example.COM ")
    user = {"email_hmac": fields.email_hmac, "email_enc": fields.email_enc}

    # Login / lookup: exact match on the fingerprint column
    row = db.find(email_hmac=guard.fingerprint(submitted_email))

    # Display
    guard.display(row.email_enc)        # "alice@example.com" or "unknown"

    # Logs
    log.info("registered %s", guard.redact(submitted_email))
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Mapping

from .codec import EmailCodec
from .errors import DecryptionError, InvalidPayloadError
from .fingerprint import Fingerprinter
from .keys import CIPHER_ENV, HMAC_ENV, KeyProvider
from .normalize import normalize_email
from .redaction import redact_email
from .types import ProtectedEmail

log = logging.getLogger(__name__)


@dataclass
class EmailGuard:
    """Fingerprinting, encryption and redaction bound to one set of keys."""

    fingerprinter: Fingerprinter
    codec: EmailCodec

    @classmethod
    def create(cls, keys: KeyProvider) -> "EmailGuard":
        return cls(fingerprinter=Fingerprinter(keys), codec=EmailCodec(keys))

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        hmac_var: str = HMAC_ENV,
        cipher_var: str = CIPHER_ENV,
    ) -> "EmailGuard":
        """Factory — reads both secrets from the environment once."""
        return cls.create(
            KeyProvider.from_env(environ, hmac_var=hmac_var, cipher_var=cipher_var)
        )

    # ------------------------------------------------------------------
    # Pass-throughs
    # ------------------------------------------------------------------

    @staticmethod
    def normalize(email: str | None) -> str:
        return normalize_email(email)

    def fingerprint(self, email: str | None) -> str:
        return self.fingerprinter(email)

    def encrypt(self, email: str | None) -> str:
        return self.codec.encrypt(email)

    def decrypt(self, payload: str | None) -> str:
        return self.codec.decrypt(payload)

    @staticmethod
    def redact(plain: str | None = None, fingerprint_hex: str | None = None) -> str:
        return redact_email(plain, fingerprint_hex)

    # ------------------------------------------------------------------
    # Storage helpers
    # ------------------------------------------------------------------

    def protect(self, email: str | None) -> ProtectedEmail:
        """Both storage fields for one address."""
        norm = normalize_email(email)
        return ProtectedEmail(
            email_hmac=self.fingerprinter(norm),
            email_enc=self.codec.encrypt(norm),
        )

    def matches(self, email: str | None, email_hmac: str) -> bool:
        return self.fingerprinter.matches(email, email_hmac)

    def display(self, payload: str | None, default: str = "unknown") -> str:
        """Decrypt for display, falling back to ``default`` on a bad token.

        Configuration errors still propagate; only token-level failures are
        turned into ``default``.
        """
        if not payload:
            return default
        try:
            return self.codec.decrypt(payload)
        except (InvalidPayloadError, DecryptionError) as e:
            log.warning("Could not decrypt stored email for display: %s", e)
            return default
