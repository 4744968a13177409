"""Credential cipher for OAuth tokens stored at rest.

Tokens are encrypted with AES-256-GCM. The stored blob is
``base64(nonce || ciphertext || tag)`` with a fresh 12-byte nonce per call and
a 16-byte authentication tag.
"""

import base64
import binascii
import os
import re
from typing import Mapping, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from bankfeed.domain.errors import ConfigurationError, DecryptionError

KEY_ENV_VAR = "BANKFEED_TOKEN_ENCRYPTION_KEY"
NONCE_LENGTH = 12
TAG_LENGTH = 16
KEY_LENGTH = 32

_HEX_KEY_RE = re.compile(r"^[0-9a-fA-F]{64}$")


class CredentialCipher:
    """Encrypts and decrypts credential strings with a single 256-bit key."""

    def __init__(self, key: bytes):
        """Initialize cipher.

        Args:
            key: 32-byte AES key

        Raises:
            ConfigurationError: If the key is not 32 bytes
        """
        if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_LENGTH:
            raise ConfigurationError(f"{KEY_ENV_VAR} must be 32 bytes (64 hex characters)")
        self._aesgcm = AESGCM(bytes(key))

    @classmethod
    def from_hex(cls, key_hex: Optional[str]) -> "CredentialCipher":
        """Build a cipher from a 64-character hex string."""
        if not key_hex:
            raise ConfigurationError(f"{KEY_ENV_VAR} environment variable is not set")
        cleaned = key_hex.strip()
        if not _HEX_KEY_RE.match(cleaned):
            raise ConfigurationError(f"{KEY_ENV_VAR} must be 32 bytes (64 hex characters)")
        return cls(bytes.fromhex(cleaned))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CredentialCipher":
        """Build a cipher from the process environment.

        Raises:
            ConfigurationError: If the key variable is absent or malformed
        """
        env = os.environ if environ is None else environ
        return cls.from_hex(env.get(KEY_ENV_VAR))

    def __repr__(self) -> str:
        return "CredentialCipher(<key hidden>)"

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a string and return the base64 blob."""
        nonce = os.urandom(NONCE_LENGTH)
        # AESGCM appends the tag to the ciphertext
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, blob: str) -> str:
        """Decrypt a blob produced by ``encrypt``.

        Raises:
            DecryptionError: If the blob is malformed, truncated, tampered with
                or was produced under a different key
        """
        try:
            combined = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError, TypeError):
            raise DecryptionError() from None

        if len(combined) < NONCE_LENGTH + TAG_LENGTH:
            raise DecryptionError()

        nonce = combined[:NONCE_LENGTH]
        sealed = combined[NONCE_LENGTH:]
        try:
            plaintext = self._aesgcm.decrypt(nonce, sealed, None)
            return plaintext.decode("utf-8")
        except (InvalidTag, UnicodeDecodeError):
            raise DecryptionError() from None
