"""Crypto service — secret-at-rest encryption and webhook signatures.

Two narrow primitives, kept apart from the pipeline control flow:

- SecretCipher: AES-256-GCM for gateway secrets stored in
  payment_gateway_settings. Each encrypt() uses a fresh random 12-byte
  nonce, stored in front of the ciphertext; the blob is base64 text.
- sign() / verify(): HMAC-SHA512 hex digests over raw webhook bodies,
  the algorithm Paystack uses for X-Paystack-Signature.
"""

import base64
import binascii
import hashlib
import hmac
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from flask import current_app

from coursepay.errors import DecryptionError

NONCE_SIZE = 12


class SecretCipher:
    """AES-GCM cipher keyed from a server-held passphrase."""

    def __init__(self, encryption_key):
        if not encryption_key:
            raise ValueError("An encryption key is required")
        if isinstance(encryption_key, str):
            encryption_key = encryption_key.encode("utf-8")
        # Any passphrase length -> 256-bit AES key
        self._aesgcm = AESGCM(hashlib.sha256(encryption_key).digest())

    @classmethod
    def from_app_config(cls):
        return cls(current_app.config["PAYMENT_ENCRYPTION_KEY"])

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + ciphertext).decode("ascii")

    def decrypt(self, blob: str) -> str:
        """Decrypt a blob from encrypt().

        Raises DecryptionError for anything that is not a valid blob for
        this key (rotated key, truncated or corrupted data).
        """
        try:
            raw = base64.b64decode(blob, validate=True)
        except (binascii.Error, TypeError, ValueError) as e:
            raise DecryptionError(f"Encrypted secret is not valid base64: {e}")

        if len(raw) <= NONCE_SIZE:
            raise DecryptionError("Encrypted secret is truncated")

        nonce, ciphertext = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext, None)
        except InvalidTag:
            raise DecryptionError(
                "Encrypted secret failed authentication (wrong key or corrupted data)"
            )
        return plaintext.decode("utf-8")


# ──────────────────────────────────────────────
# Webhook signatures
# ──────────────────────────────────────────────

def _as_bytes(value):
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def sign(body, key) -> str:
    """HMAC-SHA512 of body under key, as lowercase hex."""
    return hmac.new(_as_bytes(key), _as_bytes(body), hashlib.sha512).hexdigest()


def verify(body, signature, key) -> bool:
    """Constant-time check that signature is sign(body, key).

    Compared as bytes: a header with non-ASCII characters is a mismatch,
    not an error.
    """
    if not signature or not key:
        return False
    expected = sign(body, key).encode("ascii")
    provided = signature.strip().lower().encode("utf-8", "replace")
    return hmac.compare_digest(expected, provided)
