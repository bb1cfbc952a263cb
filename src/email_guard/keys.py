"""Key material — the HMAC secret and the AES-256 key.

Both secrets are read from configuration once, when a ``KeyProvider`` is
built, and decoded lazily on first use:

    keys = KeyProvider.from_env()                 # HMAC_SECRET / CRYPTO_KEY
    keys = KeyProvider(hmac_secret="...", cipher_key="...")   # tests, DI

Resolution is fail-closed.  A missing or mis-sized secret raises
``ConfigurationError`` on every call that needs it; there is no default key.

Accepted encodings (kept for compatibility with existing deployments):

  - HMAC secret: base64 if it decodes to >= 16 bytes, else the raw UTF-8
    bytes of the configured string.  No upper bound.
  - Cipher key: base64 if it decodes to exactly 32 bytes, else raw UTF-8 if
    that is exactly 32 bytes, else an error.  Never truncated or padded.
"""

from __future__ import annotations
import base64
import logging
import os
import re
import secrets
from typing import Mapping

from .errors import ConfigurationError, UnsafeSecretError

log = logging.getLogger(__name__)

HMAC_ENV = "HMAC_SECRET"
CIPHER_ENV = "CRYPTO_KEY"

CIPHER_KEY_BYTES = 32
MIN_HMAC_B64_BYTES = 16


# URL-safe characters are read as their standard-alphabet equivalents
_URLSAFE = str.maketrans("-_", "+/")
_NON_B64 = re.compile(r"[^A-Za-z0-9+/]")


def _b64decode(value: str) -> bytes:
    """Lenient base64, decoding the way Node's ``Buffer.from(v, "base64")`` does.

    Both alphabets are accepted, padding is optional, anything else is
    dropped, and a lone trailing character is ignored.
    """
    chars = _NON_B64.sub("", value.translate(_URLSAFE))
    if len(chars) % 4 == 1:
        chars = chars[:-1]
    return base64.b64decode(chars + "=" * (-len(chars) % 4))


def resolve_hmac_secret(value: str | None, name: str = HMAC_ENV) -> bytes:
    """Decode the configured HMAC secret."""
    if not value:
        raise ConfigurationError(f"{name} is not set")
    decoded = _b64decode(value)
    if len(decoded) >= MIN_HMAC_B64_BYTES:
        return decoded
    return value.encode("utf-8")


def resolve_cipher_key(value: str | None, name: str = CIPHER_ENV) -> bytes:
    """Decode the configured AES-256 key; it must come out at exactly 32 bytes."""
    if not value:
        raise ConfigurationError(f"{name} is not set")
    decoded = _b64decode(value)
    if len(decoded) == CIPHER_KEY_BYTES:
        return decoded
    raw = value.encode("utf-8")
    if len(raw) == CIPHER_KEY_BYTES:
        return raw
    raise ConfigurationError(
        f"{name} must be 32 bytes (provide base64 or raw 32-byte value)"
    )


class KeyProvider:
    """Immutable holder for the two configured secrets."""

    __slots__ = ("_hmac_value", "_cipher_value", "_hmac_name", "_cipher_name",
                 "_hmac_secret", "_cipher_key")

    def __init__(
        self,
        *,
        hmac_secret: str | None = None,
        cipher_key: str | None = None,
        hmac_name: str = HMAC_ENV,
        cipher_name: str = CIPHER_ENV,
    ) -> None:
        self._hmac_value = hmac_secret
        self._cipher_value = cipher_key
        self._hmac_name = hmac_name
        self._cipher_name = cipher_name
        # Decoded bytes, filled on first successful resolution
        self._hmac_secret: bytes | None = None
        self._cipher_key: bytes | None = None

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        hmac_var: str = HMAC_ENV,
        cipher_var: str = CIPHER_ENV,
    ) -> "KeyProvider":
        """Snapshot both secrets from ``environ`` (default ``os.environ``)."""
        env = os.environ if environ is None else environ
        return cls(
            hmac_secret=env.get(hmac_var),
            cipher_key=env.get(cipher_var),
            hmac_name=hmac_var,
            cipher_name=cipher_var,
        )

    def hmac_secret(self) -> bytes:
        if self._hmac_secret is None:
            self._hmac_secret = resolve_hmac_secret(self._hmac_value, self._hmac_name)
        return self._hmac_secret

    def cipher_key(self) -> bytes:
        if self._cipher_key is None:
            self._cipher_key = resolve_cipher_key(self._cipher_value, self._cipher_name)
        return self._cipher_key

    def check(self) -> None:
        """Resolve both secrets now so misconfiguration surfaces at startup."""
        self.hmac_secret()
        self.cipher_key()

    def __repr__(self) -> str:
        return f"KeyProvider(hmac={self._hmac_name}, cipher={self._cipher_name})"


# ----------------------------------------------------------------------
# Startup secret-safety checks
# ----------------------------------------------------------------------

# Values commonly left over from .env.example files
FORBIDDEN_SECRET_VALUES = (
    "your-random-session-secret-here",
    "your-random-hmac-secret-here",
    "your-random-crypto-key-here",
    "your-random-cron-secret-here",
    "changeme",
    "change-me",
    "replace-me",
    "example",
    "test-secret",
    "dev-secret",
    "development-secret",
    "placeholder",
)

MIN_SECRET_CHARS = 32

_REPEATED = re.compile(r"^(.)\1+$", re.DOTALL)
_WEAK_PREFIX = re.compile(r"^(012|123|abc|test|pass|admin)", re.IGNORECASE)

# (name, required)
DEFAULT_SECRETS: tuple[tuple[str, bool], ...] = (
    ("SESSION_SECRET", True),
    (HMAC_ENV, True),
    (CIPHER_ENV, True),
    ("CRON_SECRET", False),
)

POLICIES = ("strict", "warn")


def generate_secret(nbytes: int = CIPHER_KEY_BYTES) -> str:
    """Fresh random secret, base64 encoded (valid as HMAC secret and cipher key)."""
    return base64.b64encode(secrets.token_bytes(nbytes)).decode("ascii")


def validate_secret_safety(name: str, value: str) -> None:
    """Raise ``UnsafeSecretError`` if ``value`` is a placeholder or obviously weak."""
    lowered = value.lower()
    if any(bad in lowered for bad in FORBIDDEN_SECRET_VALUES):
        raise UnsafeSecretError(
            f"{name} contains a forbidden placeholder value; "
            "never use example values from .env.example"
        )
    if len(value) < MIN_SECRET_CHARS:
        raise UnsafeSecretError(
            f"{name} is too short ({len(value)} chars); "
            f"secrets must be at least {MIN_SECRET_CHARS} characters"
        )
    if _REPEATED.match(value):
        raise UnsafeSecretError(f"{name} contains only repeated characters")
    if _WEAK_PREFIX.match(value):
        raise UnsafeSecretError(f"{name} starts with a common weak pattern")


def validate_environment_secrets(
    environ: Mapping[str, str] | None = None,
    *,
    policy: str = "strict",
    secrets_to_check: tuple[tuple[str, bool], ...] = DEFAULT_SECRETS,
) -> list[str]:
    """Check every configured secret and report all problems at once.

    ``policy="strict"`` raises ``ConfigurationError`` when anything is wrong.
    ``policy="warn"`` logs each problem and returns the list instead; only
    use it for local development.
    """
    if policy not in POLICIES:
        raise ConfigurationError(f"Unknown secret policy: {policy!r}")
    env = os.environ if environ is None else environ

    errors: list[str] = []
    for name, required in secrets_to_check:
        value = env.get(name)
        if not value:
            if required:
                errors.append(f"{name} is not set")
            continue
        try:
            validate_secret_safety(name, value)
        except UnsafeSecretError as e:
            errors.append(str(e))

    if not errors:
        log.info("All environment secrets validated")
        return errors

    if policy == "strict":
        raise ConfigurationError(
            "Insecure secret configuration:\n" + "\n".join(f"  - {e}" for e in errors)
        )
    for e in errors:
        log.error("Insecure secret configuration: %s", e)
    return errors
