"""Reversible email codec — AES-256-GCM with a versioned token format.

Wire format (the only bit-exact contract in the package):

    v1:<base64 iv>:<base64 ciphertext>:<base64 tag>

- iv is 12 random bytes, fresh for every encryption
- tag is the 16-byte GCM authentication tag, kept separate from the ciphertext
- base64 is the standard alphabet with padding; fields must be in exactly
  that canonical form when parsed

Parsing is done once, up front, into a typed token (``TokenV1``).  The
version tag picks the parser; a payload whose tag is unknown is rejected
without ever touching key material.  A new format gets a new tag, a new
token type and a new entry in ``_PARSERS``.

Usage:
    codec = EmailCodec(KeyProvider.from_env())
    token = codec.encrypt("Alice@Example.COM")   # "v1:...:...:..."
    codec.decrypt(token)                         # "alice@example.com"
"""

from __future__ import annotations
import base64
import binascii
import os
from typing import Callable

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import DecryptionError, InvalidPayloadError
from .keys import KeyProvider
from .normalize import normalize_email
from .types import Token, TokenV1

IV_BYTES = 12
TAG_BYTES = 16
SEPARATOR = ":"


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _unb64(field: str) -> bytes:
    """Strict decode: only the exact form ``_b64`` produces is accepted."""
    try:
        data = base64.b64decode(field, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidPayloadError() from None
    # Unused trailing bits would otherwise let an edited field decode unchanged
    if _b64(data) != field:
        raise InvalidPayloadError()
    return data


# ----------------------------------------------------------------------
# Token parsing
# ----------------------------------------------------------------------

def encode_token(token: Token) -> str:
    """Serialize a parsed token back to its wire form."""
    return SEPARATOR.join(
        (token.version, _b64(token.iv), _b64(token.ciphertext), _b64(token.tag))
    )


def _parse_v1(fields: list[str]) -> TokenV1:
    if len(fields) != 3 or not all(fields):
        raise InvalidPayloadError()
    iv, ciphertext, tag = (_unb64(f) for f in fields)
    return TokenV1(iv=iv, ciphertext=ciphertext, tag=tag)


# version tag → parser for the remaining fields
_PARSERS: dict[str, Callable[[list[str]], Token]] = {
    TokenV1.version: _parse_v1,
}


def parse_token(payload: str) -> Token:
    """Split and validate a token.  Raises ``InvalidPayloadError``."""
    version, *fields = str(payload).split(SEPARATOR)
    parser = _PARSERS.get(version)
    if parser is None:
        raise InvalidPayloadError()
    return parser(fields)


# ----------------------------------------------------------------------
# Codec
# ----------------------------------------------------------------------

class EmailCodec:
    """Encrypts normalized emails into v1 tokens and back."""

    __slots__ = ("_keys",)

    def __init__(self, keys: KeyProvider) -> None:
        self._keys = keys

    def encrypt(self, email: str | None) -> str:
        plaintext = normalize_email(email).encode("utf-8")
        aead = AESGCM(self._keys.cipher_key())
        iv = os.urandom(IV_BYTES)
        # AESGCM appends the tag to the ciphertext
        sealed = aead.encrypt(iv, plaintext, None)
        token = TokenV1(iv=iv, ciphertext=sealed[:-TAG_BYTES], tag=sealed[-TAG_BYTES:])
        return encode_token(token)

    def decrypt(self, payload: str | None) -> str:
        """Return the normalized email, or ``""`` for an empty payload.

        Raises ``InvalidPayloadError`` for malformed tokens and
        ``DecryptionError`` when authentication fails.
        """
        if not payload:
            return ""
        token = parse_token(payload)
        return self._open_v1(token)

    def _open_v1(self, token: TokenV1) -> str:
        aead = AESGCM(self._keys.cipher_key())
        try:
            plaintext = aead.decrypt(token.iv, token.ciphertext + token.tag, None)
        except (InvalidTag, ValueError):
            # ValueError: IV length outside what GCM accepts
            raise DecryptionError() from None
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError:
            raise DecryptionError() from None
