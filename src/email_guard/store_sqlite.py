"""Persistent user store backed by SQLite.

Drop-in replacement for MemoryUserStore when you need durability.

Usage:
    store = SqliteUserStore(db_path="~/.email-guard/users.db")
    register_user(store, guard, "u1", "Alice", "alice@example.com")
"""

from __future__ import annotations
import sqlite3
from pathlib import Path
from typing import Iterator

from .errors import DuplicateEmailError
from .types import UserRecord


_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    user_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    email_hmac TEXT,
    email_enc TEXT,
    email TEXT,
    created_at REAL NOT NULL DEFAULT (julianday('now'))
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_users_email_hmac
    ON users(email_hmac);
"""

_COLUMNS = "user_id, name, email_hmac, email_enc, email"


def _row(row: tuple | None) -> UserRecord | None:
    if row is None:
        return None
    return UserRecord(*row)


class SqliteUserStore:
    """Persistent user store with a unique index on ``email_hmac``."""

    __slots__ = ("_db",)

    def __init__(self, *, db_path: str | Path = "users.db") -> None:
        db_path = Path(db_path).expanduser()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(str(db_path), check_same_thread=False)
        self._db.executescript(_SCHEMA)

    def add(self, record: UserRecord) -> None:
        try:
            self._db.execute(
                f"INSERT INTO users ({_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
                (record.user_id, record.name, record.email_hmac, record.email_enc, record.email),
            )
        except sqlite3.IntegrityError as e:
            self._db.rollback()
            if "email_hmac" in str(e):
                raise DuplicateEmailError("A user with this email already exists") from None
            raise KeyError(f"user {record.user_id} already exists") from None
        self._db.commit()

    def get(self, user_id: str) -> UserRecord | None:
        return _row(self._db.execute(
            f"SELECT {_COLUMNS} FROM users WHERE user_id = ?", (user_id,),
        ).fetchone())

    def find_by_hmac(self, email_hmac: str) -> UserRecord | None:
        return _row(self._db.execute(
            f"SELECT {_COLUMNS} FROM users WHERE email_hmac = ?", (email_hmac,),
        ).fetchone())

    def update_email_fields(
        self,
        user_id: str,
        email_hmac: str,
        email_enc: str,
        *,
        clear_plaintext: bool = True,
    ) -> None:
        sql = "UPDATE users SET email_hmac = ?, email_enc = ?"
        if clear_plaintext:
            sql += ", email = NULL"
        try:
            cur = self._db.execute(sql + " WHERE user_id = ?", (email_hmac, email_enc, user_id))
        except sqlite3.IntegrityError:
            self._db.rollback()
            raise DuplicateEmailError("A user with this email already exists") from None
        if cur.rowcount == 0:
            self._db.rollback()
            raise KeyError(user_id)
        self._db.commit()

    def pending_backfill(self) -> list[UserRecord]:
        rows = self._db.execute(
            f"SELECT {_COLUMNS} FROM users "
            "WHERE email IS NOT NULL AND email != '' "
            "AND (email_hmac IS NULL OR email_hmac = '' OR email_enc IS NULL OR email_enc = '') "
            "ORDER BY created_at, user_id",
        ).fetchall()
        return [UserRecord(*r) for r in rows]

    def all(self) -> Iterator[UserRecord]:
        rows = self._db.execute(
            f"SELECT {_COLUMNS} FROM users ORDER BY created_at, user_id"
        ).fetchall()
        return (UserRecord(*r) for r in rows)

    @property
    def size(self) -> int:
        return self._db.execute("SELECT COUNT(*) FROM users").fetchone()[0]

    def close(self) -> None:
        self._db.close()
