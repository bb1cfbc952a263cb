"""In-memory user store — reference implementation of the storage contract.

The guard never persists anything.  Applications keep two columns per user:

  - ``email_hmac``: unique index, used for every equality lookup
  - ``email_enc``:  v1 token, decrypted only for authorized display

``MemoryUserStore`` and ``SqliteUserStore`` share the same API, so the
helpers below work with either.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Iterator, Protocol

from .errors import DuplicateEmailError
from .guard import EmailGuard
from .types import UserRecord


class UserStore(Protocol):
    def add(self, record: UserRecord) -> None: ...
    def get(self, user_id: str) -> UserRecord | None: ...
    def find_by_hmac(self, email_hmac: str) -> UserRecord | None: ...
    def update_email_fields(
        self, user_id: str, email_hmac: str, email_enc: str, *, clear_plaintext: bool = True,
    ) -> None: ...
    def pending_backfill(self) -> list[UserRecord]: ...
    def all(self) -> Iterator[UserRecord]: ...


class MemoryUserStore:
    """Dict-backed user store with a unique fingerprint index."""

    __slots__ = ("_by_id", "_by_hmac")

    def __init__(self) -> None:
        self._by_id: dict[str, UserRecord] = {}
        self._by_hmac: dict[str, str] = {}      # email_hmac → user_id

    # ------------------------------------------------------------------
    # Core API
    # ------------------------------------------------------------------

    def add(self, record: UserRecord) -> None:
        if record.user_id in self._by_id:
            raise KeyError(f"user {record.user_id} already exists")
        if record.email_hmac and record.email_hmac in self._by_hmac:
            raise DuplicateEmailError("A user with this email already exists")
        self._by_id[record.user_id] = replace(record)
        if record.email_hmac:
            self._by_hmac[record.email_hmac] = record.user_id

    def get(self, user_id: str) -> UserRecord | None:
        rec = self._by_id.get(user_id)
        return replace(rec) if rec else None

    def find_by_hmac(self, email_hmac: str) -> UserRecord | None:
        user_id = self._by_hmac.get(email_hmac)
        return self.get(user_id) if user_id else None

    def update_email_fields(
        self,
        user_id: str,
        email_hmac: str,
        email_enc: str,
        *,
        clear_plaintext: bool = True,
    ) -> None:
        rec = self._by_id[user_id]
        owner = self._by_hmac.get(email_hmac)
        if owner is not None and owner != user_id:
            raise DuplicateEmailError("A user with this email already exists")
        if rec.email_hmac and rec.email_hmac != email_hmac:
            self._by_hmac.pop(rec.email_hmac, None)
        rec.email_hmac = email_hmac
        rec.email_enc = email_enc
        if clear_plaintext:
            rec.email = None
        self._by_hmac[email_hmac] = user_id

    def pending_backfill(self) -> list[UserRecord]:
        """Records that still carry a plaintext email and lack an encrypted field."""
        return [
            replace(r) for r in self._by_id.values()
            if r.email and (not r.email_hmac or not r.email_enc)
        ]

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def all(self) -> Iterator[UserRecord]:
        return (replace(r) for r in list(self._by_id.values()))

    @property
    def size(self) -> int:
        return len(self._by_id)

    def close(self) -> None:
        pass


# ----------------------------------------------------------------------
# Helpers shared by both stores
# ----------------------------------------------------------------------

def register_user(
    store: UserStore,
    guard: EmailGuard,
    user_id: str,
    name: str,
    email: str,
) -> UserRecord:
    """Create a user holding only the fingerprint and the token of ``email``."""
    fields = guard.protect(email)
    record = UserRecord(
        user_id=user_id,
        name=name,
        email_hmac=fields.email_hmac,
        email_enc=fields.email_enc,
    )
    store.add(record)
    return record


def find_user(store: UserStore, guard: EmailGuard, email: str) -> UserRecord | None:
    """Exact-match lookup by email, through the fingerprint index."""
    return store.find_by_hmac(guard.fingerprint(email))
