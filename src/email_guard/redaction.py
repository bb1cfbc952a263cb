"""Log-safe email rendering.

``redact_email`` is for humans reading logs only.  Its output must never be
stored or used as a lookup key; use the fingerprint for that.
"""

from __future__ import annotations
import logging

from .normalize import normalize_email, scrub_emails

SENTINEL = "***"
HMAC_PREFIX_LEN = 8


def redact_email(plain: str | None = None, fingerprint_hex: str | None = None) -> str:
    """``j***@example.com`` from a plaintext, ``hmac:1a2b3c4d…`` from a fingerprint."""
    if plain:
        norm = normalize_email(plain)
        user, sep, domain = norm.partition("@")
        if not sep or not domain:
            return SENTINEL
        shown = f"{user[0]}{SENTINEL}" if user else SENTINEL
        return f"{shown}@{domain.split('@')[0]}"
    if fingerprint_hex:
        return f"hmac:{fingerprint_hex[:HMAC_PREFIX_LEN]}…"
    return SENTINEL


class EmailRedactingFilter(logging.Filter):
    """Logging filter that rewrites any email address in a record to its redacted form.

    Attach it to a handler so that stray addresses in messages or arguments
    never reach the log sink:

        handler.addFilter(EmailRedactingFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = scrub_emails(record.msg, redact_email)
        if isinstance(record.args, tuple):
            record.args = tuple(
                scrub_emails(a, redact_email) if isinstance(a, str) else a
                for a in record.args
            )
        elif isinstance(record.args, dict):
            record.args = {
                k: scrub_emails(v, redact_email) if isinstance(v, str) else v
                for k, v in record.args.items()
            }
        return True
