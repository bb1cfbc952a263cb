"""Shared fixture keys — injected through KeyProvider, never via os.environ."""

import base64
import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from email_guard import EmailGuard, KeyProvider

HMAC_SECRET = base64.b64encode(bytes(range(100, 132))).decode()
CIPHER_KEY = base64.b64encode(bytes(range(32))).decode()
OTHER_CIPHER_KEY = base64.b64encode(bytes(range(1, 33))).decode()


@pytest.fixture
def keys() -> KeyProvider:
    return KeyProvider(hmac_secret=HMAC_SECRET, cipher_key=CIPHER_KEY)


@pytest.fixture
def guard(keys: KeyProvider) -> EmailGuard:
    return EmailGuard.create(keys)


@pytest.fixture
def env() -> dict[str, str]:
    return {"HMAC_SECRET": HMAC_SECRET, "CRYPTO_KEY": CIPHER_KEY}
