"""
auth/crypto.py -- Symmetric encryption of the stored GitHub access token.

Uses Fernet (AES-128-CBC + HMAC-SHA256, URL-safe base64) from the cryptography
library. The Fernet key is derived from CRYPTO_SECRET_KEY with SHA-256 so any
sufficiently long secret works; Settings enforces the 32-character minimum.

encrypt(None) and decrypt(None) return None: an absent token stays absent.

Layer rule: no imports from api/ or client/.
"""

from __future__ import annotations

import base64
import hashlib
import logging

from cryptography.fernet import Fernet, InvalidToken

from core.errors import InternalError

logger = logging.getLogger("readivine.auth.crypto")


def _derive_key(secret: str) -> bytes:
    return base64.urlsafe_b64encode(hashlib.sha256(secret.encode("utf-8")).digest())


class TokenCipher:
    """Encrypt/decrypt provider tokens for storage.

    Example:
        >>> cipher = TokenCipher("x" * 32)
        >>> cipher.decrypt(cipher.encrypt("gho_abc")) == "gho_abc"
        True
    """

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("TokenCipher requires a non-empty secret")
        self._fernet = Fernet(_derive_key(secret))

    def encrypt(self, plaintext: str | None) -> str | None:
        if plaintext is None:
            return None
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str | None) -> str | None:
        """Return the plaintext, or raise InternalError if the ciphertext was
        tampered with or written under a different key."""
        if ciphertext is None:
            return None
        try:
            return self._fernet.decrypt(ciphertext.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            logger.error("Stored GitHub token could not be decrypted (key rotated or data corrupted)")
            raise InternalError("Stored credentials could not be decrypted.") from exc
