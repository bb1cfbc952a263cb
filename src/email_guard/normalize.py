"""Email normalization and free-text email matching.

Every other operation in the package goes through ``normalize_email`` first,
so ``" Foo@Bar.com "`` and ``"foo@bar.com"`` are the same address everywhere.
"""

from __future__ import annotations
import re
from typing import Callable

# Same shape the PII scanners use for emails in free text
EMAIL_PATTERN: re.Pattern = re.compile(
    r"\b[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}\b"
)


def normalize_email(email: str | None) -> str:
    """Trim and lower-case. ``None`` becomes ``""``."""
    return str(email or "").strip().lower()


def scrub_emails(text: str, replace: Callable[[str], str]) -> str:
    """Replace every email address found in ``text`` with ``replace(match)``."""
    if "@" not in text:
        return text
    return EMAIL_PATTERN.sub(lambda m: replace(m.group()), text)
