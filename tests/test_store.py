"""Tests for the user stores, backfill and config loader."""

import logging

import pytest

from conftest import CIPHER_KEY, HMAC_SECRET
from email_guard import (
    ConfigurationError,
    DuplicateEmailError,
    EmailGuard,
    KeyProvider,
    MemoryUserStore,
    SqliteUserStore,
    UserRecord,
    backfill_emails,
    create_guard,
    create_store,
    find_user,
    load_config,
    load_from_yaml,
    register_user,
)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        s = MemoryUserStore()
    else:
        s = SqliteUserStore(db_path=tmp_path / "users.db")
    yield s
    s.close()


# ── Stores ───────────────────────────────────────────────────────────

def test_register_stores_no_plaintext(store, guard):
    rec = register_user(store, guard, "u1", "Alice", " Alice@Example.com ")
    saved = store.get("u1")
    assert saved == rec
    assert saved.email is None
    assert "alice" not in saved.email_hmac
    assert "alice" not in saved.email_enc
    assert guard.decrypt(saved.email_enc) == "alice@example.com"


def test_find_user_case_insensitive(store, guard):
    register_user(store, guard, "u1", "Alice", "alice@example.com")
    register_user(store, guard, "u2", "Bob", "bob@example.com")
    assert find_user(store, guard, "ALICE@example.com ").user_id == "u1"
    assert find_user(store, guard, "bob@example.com").user_id == "u2"
    assert find_user(store, guard, "carol@example.com") is None


def test_duplicate_email_rejected(store, guard):
    register_user(store, guard, "u1", "Alice", "alice@example.com")
    with pytest.raises(DuplicateEmailError):
        register_user(store, guard, "u2", "Alice again", "Alice@Example.com")
    assert store.size == 1


def test_duplicate_user_id_rejected(store, guard):
    register_user(store, guard, "u1", "Alice", "alice@example.com")
    with pytest.raises(KeyError):
        register_user(store, guard, "u1", "Bob", "bob@example.com")


def test_update_email_fields(store, guard):
    register_user(store, guard, "u1", "Alice", "alice@example.com")
    fields = guard.protect("alice@new.example.com")
    store.update_email_fields("u1", fields.email_hmac, fields.email_enc)
    assert find_user(store, guard, "alice@example.com") is None
    assert find_user(store, guard, "alice@new.example.com").user_id == "u1"


def test_sqlite_store_persists(tmp_path, guard):
    path = tmp_path / "nested" / "users.db"
    s = SqliteUserStore(db_path=path)
    register_user(s, guard, "u1", "Alice", "alice@example.com")
    s.close()

    s = SqliteUserStore(db_path=path)
    assert find_user(s, guard, "alice@example.com").name == "Alice"
    assert [r.user_id for r in s.all()] == ["u1"]
    s.close()


# ── Backfill ─────────────────────────────────────────────────────────

def test_backfill_fills_and_clears_plaintext(store, guard):
    store.add(UserRecord(user_id="u1", name="Bob", email="Bob@X.com"))
    store.add(UserRecord(user_id="u2", name="Eve", email="eve@x.com"))
    report = backfill_emails(store, guard)

    assert report.updated == 2
    assert report.failed == []
    bob = store.get("u1")
    assert bob.email is None
    assert bob.email_hmac == guard.fingerprint("bob@x.com")
    assert guard.decrypt(bob.email_enc) == "bob@x.com"
    assert store.pending_backfill() == []


def test_backfill_keeps_existing_fields(store, guard):
    existing = guard.fingerprint("carol@x.com")
    store.add(UserRecord(user_id="u1", name="Carol", email="carol@x.com", email_hmac=existing))
    backfill_emails(store, guard)
    carol = store.get("u1")
    assert carol.email_hmac == existing
    assert guard.decrypt(carol.email_enc) == "carol@x.com"


def test_backfill_dry_run(store, guard):
    store.add(UserRecord(user_id="u1", name="Bob", email="bob@x.com"))
    report = backfill_emails(store, guard, dry_run=True)
    assert report.dry_run
    assert report.updated == 1
    assert store.get("u1").email == "bob@x.com"
    assert store.get("u1").email_hmac is None


def test_backfill_skips_blank_and_migrated(store, guard):
    register_user(store, guard, "u0", "Done", "done@x.com")
    store.add(UserRecord(user_id="u1", name="Blank", email="   "))
    store.add(UserRecord(user_id="u2", name="None"))
    report = backfill_emails(store, guard)
    assert report.skipped == 1
    assert report.updated == 0
    assert report.total == 1


def test_backfill_collects_duplicate_failures(store, guard):
    store.add(UserRecord(user_id="u1", name="A", email="dup@x.com"))
    store.add(UserRecord(user_id="u2", name="B", email="DUP@x.com"))
    report = backfill_emails(store, guard)
    assert report.updated == 1
    assert len(report.failed) == 1
    assert report.failed[0][0] in ("u1", "u2")


def test_backfill_aborts_on_configuration_error(store):
    store.add(UserRecord(user_id="u1", name="Bob", email="bob@x.com"))
    guard = EmailGuard.create(KeyProvider(hmac_secret=HMAC_SECRET))
    with pytest.raises(ConfigurationError):
        backfill_emails(store, guard)
    assert store.get("u1").email == "bob@x.com"


def test_backfill_logs_redacted_only(store, guard, caplog):
    store.add(UserRecord(user_id="u1", name="Bob", email="bobby.tables@x.com"))
    with caplog.at_level(logging.INFO, logger="email_guard"):
        backfill_emails(store, guard)
    assert "bobby.tables" not in caplog.text
    assert "b***@x.com" in caplog.text


# ── Config ───────────────────────────────────────────────────────────

def test_load_config_defaults():
    cfg = load_config({})
    assert cfg["hmac_env"] == "HMAC_SECRET"
    assert cfg["cipher_env"] == "CRYPTO_KEY"
    assert cfg["secret_policy"] == "strict"
    assert cfg["validate_secrets"] is False
    assert cfg["store_backend"] == "memory"


def test_load_config_nested():
    cfg = load_config({"email_guard": {"hmac_env": "H", "store": {"backend": "sqlite", "path": "x.db"}}})
    assert cfg["hmac_env"] == "H"
    assert cfg["store_backend"] == "sqlite"
    assert cfg["store_path"] == "x.db"


@pytest.mark.parametrize("data", [
    {"secret_policy": "open"},
    {"store": {"backend": "postgres"}},
])
def test_load_config_rejects_unknown_values(data):
    with pytest.raises(ConfigurationError):
        load_config(data)


def test_load_from_yaml(tmp_path):
    path = tmp_path / "guard.yaml"
    path.write_text(
        "email_guard:\n"
        "  cipher_env: APP_EMAIL_KEY\n"
        "  secret_policy: warn\n"
        "  store:\n"
        "    backend: sqlite\n"
        "    path: users.db\n"
    )
    cfg = load_from_yaml(path)
    assert cfg["cipher_env"] == "APP_EMAIL_KEY"
    assert cfg["secret_policy"] == "warn"
    assert cfg["store_backend"] == "sqlite"


def test_create_guard_with_custom_variables():
    env = {"H": HMAC_SECRET, "K": CIPHER_KEY}
    guard = create_guard({"hmac_env": "H", "cipher_env": "K"}, environ=env)
    assert guard.decrypt(guard.encrypt("a@b.com")) == "a@b.com"


def test_create_guard_validates_when_asked():
    env = {"HMAC_SECRET": "changeme-changeme-changeme-changeme", "CRYPTO_KEY": CIPHER_KEY}
    with pytest.raises(ConfigurationError, match="HMAC_SECRET"):
        create_guard({"validate_secrets": True}, environ=env)
    # warn policy lets it through
    guard = create_guard({"validate_secrets": True, "secret_policy": "warn"}, environ=env)
    assert guard.fingerprint("a@b.com")


def test_create_store(tmp_path):
    assert isinstance(create_store({}), MemoryUserStore)
    s = create_store({"store": {"backend": "sqlite", "path": str(tmp_path / "u.db")}})
    assert isinstance(s, SqliteUserStore)
    s.close()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
