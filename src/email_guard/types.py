"""Core types."""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import ClassVar


@dataclass(frozen=True, slots=True)
class TokenV1:
    """Parsed ``v1:<iv>:<ciphertext>:<tag>`` token (raw bytes, not base64)."""
    iv: bytes
    ciphertext: bytes
    tag: bytes

    version: ClassVar[str] = "v1"


# Every token format the codec can parse. Widen to a Union for v2.
Token = TokenV1


@dataclass(frozen=True, slots=True)
class ProtectedEmail:
    """The two storage fields derived from one email address."""
    email_hmac: str        # 64 hex chars, unique lookup key
    email_enc: str         # v1 token, recoverable for display


@dataclass(slots=True)
class UserRecord:
    """Minimal user row as seen by the storage collaborators."""
    user_id: str
    name: str
    email_hmac: str | None = None
    email_enc: str | None = None
    email: str | None = None   # legacy plaintext column, emptied by backfill


@dataclass(slots=True)
class BackfillReport:
    """Outcome of a backfill run."""
    dry_run: bool = False
    updated: int = 0
    skipped: int = 0
    failed: list[tuple[str, str]] = field(default_factory=list)  # (user_id, error)

    @property
    def total(self) -> int:
        return self.updated + self.skipped + len(self.failed)
