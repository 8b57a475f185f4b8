"""AES-256-GCM encryption of TOTP shared secrets at rest."""

from __future__ import annotations

import base64
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

NONCE_SIZE = 12
TAG_SIZE = 16


class TotpCryptoError(Exception):
    """Raised when a stored secret cannot be decrypted."""


class TotpCrypto:
    """
    Symmetric authenticated encryption keyed by an operator-supplied key.

    Ciphertext format: ``base64(iv):base64(tag):base64(ciphertext)``.
    """

    def __init__(self, key: bytes) -> None:
        if len(key) != 32:
            raise ValueError("TOTP encryption key must be 32 bytes (64 hex characters)")
        self._aesgcm = AESGCM(key)

    @classmethod
    def from_hex(cls, hex_key: str) -> "TotpCrypto":
        try:
            key = bytes.fromhex(hex_key)
        except ValueError as exc:
            raise ValueError("TOTP_ENCRYPTION_KEY must be hex encoded") from exc
        return cls(key)

    def encrypt(self, plaintext: str) -> str:
        iv = os.urandom(NONCE_SIZE)
        sealed = self._aesgcm.encrypt(iv, plaintext.encode("utf-8"), None)
        # AESGCM appends the tag to the ciphertext
        encrypted, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
        return ":".join(
            base64.b64encode(part).decode("ascii") for part in (iv, tag, encrypted)
        )

    def decrypt(self, ciphertext: str) -> str:
        try:
            iv_b64, tag_b64, encrypted_b64 = ciphertext.split(":")
            iv = base64.b64decode(iv_b64, validate=True)
            tag = base64.b64decode(tag_b64, validate=True)
            encrypted = base64.b64decode(encrypted_b64, validate=True)
        except ValueError as exc:
            raise TotpCryptoError("Malformed TOTP ciphertext") from exc

        try:
            plaintext = self._aesgcm.decrypt(iv, encrypted + tag, None)
        except InvalidTag as exc:
            raise TotpCryptoError("TOTP ciphertext failed authentication") from exc
        return plaintext.decode("utf-8")
