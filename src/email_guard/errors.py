"""Error taxonomy.

Nothing in this package catches these; they go straight to the caller.
"""

from __future__ import annotations


class EmailGuardError(Exception):
    """Base class for every error raised by email_guard."""


class ConfigurationError(EmailGuardError):
    """A required secret is missing or malformed, or a config value is bad."""


class UnsafeSecretError(ConfigurationError):
    """A secret is set but looks like a placeholder or is too weak."""


class InvalidPayloadError(EmailGuardError):
    """An encrypted email token is structurally malformed."""

    def __init__(self, message: str = "Invalid encrypted email payload") -> None:
        super().__init__(message)


class DecryptionError(EmailGuardError):
    """Authenticated decryption failed.

    The message is identical for a wrong key, a bad tag and corrupted
    ciphertext.
    """

    def __init__(self) -> None:
        super().__init__("Unable to decrypt email payload")


class DuplicateEmailError(EmailGuardError):
    """A user record with the same email fingerprint already exists."""
