"""CLI interface for email-guard — operator tooling around the email keys.

Usage:
    # Fingerprint / encrypt / decrypt (argument, or stdin when omitted)
    python -m email_guard.cli fingerprint alice@example.com
    python -m email_guard.cli encrypt alice@example.com
    echo 'v1:...:...:...' | python -m email_guard.cli decrypt

    # Log-safe rendering
    python -m email_guard.cli redact john.doe@example.com
    python -m email_guard.cli redact --hmac 1a2b3c4d5e6f...

    # Secrets
    python -m email_guard.cli generate-key
    python -m email_guard.cli check-env --policy strict

    # User store maintenance
    python -m email_guard.cli backfill --db users.db --dry-run
    python -m email_guard.cli lookup alice@example.com --db users.db

Keys are read from HMAC_SECRET / CRYPTO_KEY unless --hmac-env / --cipher-env
(or a --config file) name other variables.
"""

from __future__ import annotations
import argparse
import json
import logging
import os
import sys
from pathlib import Path

from .backfill import backfill_emails
from .config import create_guard, load_config, load_from_yaml
from .errors import EmailGuardError
from .guard import EmailGuard
from .keys import generate_secret, validate_environment_secrets
from .redaction import EmailRedactingFilter
from .store import find_user
from .store_sqlite import SqliteUserStore


DEFAULT_DB = os.environ.get(
    "EMAIL_GUARD_DB",
    str(Path.home() / ".email-guard" / "users.db"),
)


def _config(args: argparse.Namespace) -> dict:
    cfg = load_from_yaml(args.config) if args.config else load_config({})
    if args.hmac_env:
        cfg["hmac_env"] = args.hmac_env
    if args.cipher_env:
        cfg["cipher_env"] = args.cipher_env
    return cfg


def _build_guard(args: argparse.Namespace) -> EmailGuard:
    return create_guard(_config(args))


def _value(args: argparse.Namespace) -> str:
    if args.value is not None:
        return args.value
    return sys.stdin.read().strip()


def cmd_fingerprint(args: argparse.Namespace) -> None:
    """Print the HMAC fingerprint of an email."""
    sys.stdout.write(_build_guard(args).fingerprint(_value(args)) + "\n")


def cmd_encrypt(args: argparse.Namespace) -> None:
    """Print a v1 token for an email."""
    sys.stdout.write(_build_guard(args).encrypt(_value(args)) + "\n")


def cmd_decrypt(args: argparse.Namespace) -> None:
    """Print the email inside a v1 token."""
    sys.stdout.write(_build_guard(args).decrypt(_value(args)) + "\n")


def cmd_redact(args: argparse.Namespace) -> None:
    """Print the log-safe form of an email or fingerprint."""
    sys.stdout.write(EmailGuard.redact(args.value, args.hmac) + "\n")


def cmd_generate_key(args: argparse.Namespace) -> None:
    """Print a fresh base64 secret."""
    sys.stdout.write(generate_secret(args.bytes) + "\n")


def cmd_check_env(args: argparse.Namespace) -> None:
    """Validate the secrets in the environment."""
    cfg = _config(args)
    problems = validate_environment_secrets(
        policy=args.policy,
        secrets_to_check=(
            ("SESSION_SECRET", True),
            (cfg["hmac_env"], True),
            (cfg["cipher_env"], True),
            ("CRON_SECRET", False),
        ),
    )
    json.dump({"ok": not problems, "problems": problems}, sys.stdout, indent=2)
    sys.stdout.write("\n")


def cmd_backfill(args: argparse.Namespace) -> None:
    """Fill email_hmac / email_enc for users that only have a plaintext email."""
    guard = _build_guard(args)
    store = SqliteUserStore(db_path=args.db)
    try:
        report = backfill_emails(store, guard, dry_run=args.dry_run)
    finally:
        store.close()
    json.dump({
        "dry_run": report.dry_run,
        "updated": report.updated,
        "skipped": report.skipped,
        "failed": [{"user_id": uid, "error": err} for uid, err in report.failed],
    }, sys.stdout, indent=2)
    sys.stdout.write("\n")
    if report.failed:
        sys.exit(1)


def cmd_lookup(args: argparse.Namespace) -> None:
    """Find a user by email through the fingerprint index."""
    guard = _build_guard(args)
    store = SqliteUserStore(db_path=args.db)
    try:
        user = find_user(store, guard, _value(args))
    finally:
        store.close()
    if user is None:
        sys.stderr.write("not found\n")
        sys.exit(1)
    json.dump({
        "user_id": user.user_id,
        "name": user.name,
        "email": guard.display(user.email_enc),
    }, sys.stdout, ensure_ascii=False)
    sys.stdout.write("\n")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [email-guard] %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(EmailRedactingFilter())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="email_guard",
        description="Email fingerprinting and encryption tooling",
    )
    parser.add_argument("--config", default=None, help="YAML config file")
    parser.add_argument("--hmac-env", default=None, help="Env var holding the HMAC secret")
    parser.add_argument("--cipher-env", default=None, help="Env var holding the AES key")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("fingerprint", "HMAC fingerprint of an email"),
        ("encrypt", "Encrypt an email to a v1 token"),
        ("decrypt", "Decrypt a v1 token"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("value", nargs="?", default=None, help="Input (default: stdin)")

    p = sub.add_parser("redact", help="Log-safe form of an email")
    p.add_argument("value", nargs="?", default=None)
    p.add_argument("--hmac", default=None, help="Fingerprint to excerpt instead")

    p = sub.add_parser("generate-key", help="Generate a random base64 secret")
    p.add_argument("--bytes", type=int, default=32)

    p = sub.add_parser("check-env", help="Validate secrets in the environment")
    p.add_argument("--policy", choices=["strict", "warn"], default="strict")

    p = sub.add_parser("backfill", help="Backfill encrypted email fields")
    p.add_argument("--db", default=DEFAULT_DB, help="SQLite user store path")
    p.add_argument("--dry-run", action="store_true", help="Report without writing")

    p = sub.add_parser("lookup", help="Find a user by email")
    p.add_argument("value", nargs="?", default=None)
    p.add_argument("--db", default=DEFAULT_DB, help="SQLite user store path")

    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    cmds = {
        "fingerprint": cmd_fingerprint,
        "encrypt": cmd_encrypt,
        "decrypt": cmd_decrypt,
        "redact": cmd_redact,
        "generate-key": cmd_generate_key,
        "check-env": cmd_check_env,
        "backfill": cmd_backfill,
        "lookup": cmd_lookup,
    }
    try:
        cmds[args.command](args)
    except EmailGuardError as e:
        sys.stderr.write(f"error: {e}\n")
        sys.exit(1)


if __name__ == "__main__":
    main()
