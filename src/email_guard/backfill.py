"""Backfill ``email_hmac`` / ``email_enc`` for users that still hold a plaintext email.

Only the missing field(s) are computed; the plaintext column is cleared once
both are present.  A failure on one user is recorded and the run continues,
except for ``ConfigurationError``, which aborts everything: no record should
be written with a key the process could not load.
"""

from __future__ import annotations
import logging

from .errors import ConfigurationError, EmailGuardError
from .guard import EmailGuard
from .normalize import normalize_email
from .redaction import redact_email
from .store import UserStore
from .types import BackfillReport

log = logging.getLogger(__name__)


def backfill_emails(
    store: UserStore,
    guard: EmailGuard,
    *,
    dry_run: bool = False,
) -> BackfillReport:
    report = BackfillReport(dry_run=dry_run)
    pending = store.pending_backfill()
    log.info("Found %d users to backfill%s", len(pending), " (dry run)" if dry_run else "")

    for user in pending:
        norm = normalize_email(user.email)
        if not norm:
            log.warning("Skipping user %s: no email", user.user_id)
            report.skipped += 1
            continue

        try:
            email_hmac = user.email_hmac or guard.fingerprint(norm)
            email_enc = user.email_enc or guard.encrypt(norm)
            if not dry_run:
                store.update_email_fields(user.user_id, email_hmac, email_enc)
        except ConfigurationError:
            raise
        except (EmailGuardError, KeyError) as e:
            log.error("Backfill failed for user %s (%s): %s",
                      user.user_id, redact_email(norm), e)
            report.failed.append((user.user_id, str(e)))
            continue

        log.info("%s user %s (%s) hmac=%s",
                 "Would migrate" if dry_run else "Migrated",
                 user.user_id, redact_email(norm), redact_email(None, email_hmac))
        report.updated += 1

    log.info("Backfill complete: %d updated, %d skipped, %d failed",
             report.updated, report.skipped, len(report.failed))
    return report
