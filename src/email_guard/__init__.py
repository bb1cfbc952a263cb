"""Email Guard — HMAC fingerprints and AES-GCM tokens so emails are never stored in plaintext."""

from .codec import EmailCodec, encode_token, parse_token
from .config import create_guard, create_store, load_config, load_from_yaml
from .errors import (
    ConfigurationError,
    DecryptionError,
    DuplicateEmailError,
    EmailGuardError,
    InvalidPayloadError,
    UnsafeSecretError,
)
from .fingerprint import Fingerprinter, fingerprint_email
from .guard import EmailGuard
from .keys import (
    KeyProvider,
    generate_secret,
    resolve_cipher_key,
    resolve_hmac_secret,
    validate_environment_secrets,
    validate_secret_safety,
)
from .normalize import normalize_email
from .redaction import EmailRedactingFilter, redact_email
from .store import MemoryUserStore, find_user, register_user
from .store_sqlite import SqliteUserStore
from .backfill import backfill_emails
from .types import BackfillReport, ProtectedEmail, TokenV1, UserRecord

__all__ = [
    "EmailGuard", "KeyProvider", "EmailCodec", "Fingerprinter",
    "normalize_email", "fingerprint_email", "redact_email", "EmailRedactingFilter",
    "encode_token", "parse_token",
    "resolve_hmac_secret", "resolve_cipher_key", "generate_secret",
    "validate_secret_safety", "validate_environment_secrets",
    "MemoryUserStore", "SqliteUserStore", "register_user", "find_user",
    "backfill_emails",
    "create_guard", "create_store", "load_config", "load_from_yaml",
    "TokenV1", "ProtectedEmail", "UserRecord", "BackfillReport",
    "EmailGuardError", "ConfigurationError", "UnsafeSecretError",
    "InvalidPayloadError", "DecryptionError", "DuplicateEmailError",
]
__version__ = "0.1.0"
