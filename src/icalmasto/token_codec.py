"""Summary: Obfuscation for Mastodon client secrets and access tokens at rest.

Importance: Keeps credentials out of plain sight in the local SQLite file.
Alternatives: Use a proper encryption library with key management.
"""

from __future__ import annotations

import base64
import hashlib


PREFIX = "v1:"


class TokenCodec:
    """Summary: Reversible encoder for stored credentials.

    Importance: The same deployment secret must decode what it encoded.
    Alternatives: Store credentials in the OS keyring.
    """

    def __init__(self, secret: str) -> None:
        self._secret = (secret or "ical-to-masto").encode("utf-8")

    def encode(self, plaintext: str) -> str:
        raw = plaintext.encode("utf-8")
        sealed = _xor(raw, _keystream(self._secret, len(raw)))
        return PREFIX + base64.urlsafe_b64encode(sealed).decode("ascii")

    def decode(self, payload: str) -> str:
        """Summary: Decode a value produced by encode.

        Importance: Refuses values that were not written by this codec.
        Alternatives: Return the payload unchanged when the prefix is missing.
        """

        if not payload.startswith(PREFIX):
            raise ValueError("Stored credential has an unknown encoding")
        sealed = base64.urlsafe_b64decode(payload[len(PREFIX) :].encode("ascii"))
        return _xor(sealed, _keystream(self._secret, len(sealed))).decode("utf-8")


def _xor(data: bytes, key: bytes) -> bytes:
    return bytes(left ^ right for left, right in zip(data, key))


def _keystream(secret: bytes, length: int) -> bytes:
    blocks = []
    for counter in range(-(-length // 32)):
        blocks.append(hashlib.sha256(secret + counter.to_bytes(4, "big")).digest())
    return b"".join(blocks)[:length]
