"""Encryption of key material at rest.

Uses Fernet (AES-128-CBC with HMAC) for symmetric encryption, so a private
key can sit in the environment or on disk without being stored in clear.
"""

import base64
import hashlib
import logging
import os
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from keyrelay.errors import InvalidEncodingError

logger = logging.getLogger(__name__)

# Fernet tokens are base64 of a 0x80 version byte, so they start with this
FERNET_PREFIX = "gAAAAA"


def generate_master_key() -> str:
    """Generate a new master encryption key.

    Returns:
        Base64-encoded 32-byte key suitable for Fernet
    """
    return Fernet.generate_key().decode()


def derive_key_from_password(password: str, salt: Optional[bytes] = None) -> tuple[str, bytes]:
    """Derive a Fernet key from a password using PBKDF2.

    Args:
        password: User-provided password
        salt: Optional salt (generated if not provided)

    Returns:
        Tuple of (base64-encoded key, salt)
    """
    if salt is None:
        salt = os.urandom(16)

    # PBKDF2 with SHA256, 100k iterations
    key = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode(),
        salt,
        100000,
        dklen=32,
    )

    return base64.urlsafe_b64encode(key).decode(), salt


class SecretEncryptor:
    """Encrypts and decrypts secret strings (private keys) using Fernet.

    Usage:
        encryptor = SecretEncryptor(master_key)
        encrypted = encryptor.encrypt(key.to_hex())
        decrypted = encryptor.decrypt(encrypted)
    """

    def __init__(self, master_key: str):
        self._fernet = Fernet(master_key.encode())

    def encrypt(self, secret: str) -> str:
        return self._fernet.encrypt(secret.encode()).decode()

    def decrypt(self, token: str) -> str:
        """Decrypt a Fernet token.

        Raises:
            InvalidEncodingError: If the token is corrupt or the key is wrong
        """
        try:
            return self._fernet.decrypt(token.encode()).decode()
        except InvalidToken as e:
            raise InvalidEncodingError("cannot decrypt secret: wrong master key or corrupted data") from e

    def rotate_key(self, new_key: str, token: str) -> str:
        """Re-encrypt a token under a new master key."""
        return Fernet(new_key.encode()).encrypt(self.decrypt(token).encode()).decode()


def is_encrypted(value: str) -> bool:
    return value.startswith(FERNET_PREFIX)


def encrypt_secret(secret: str, master_key: str) -> str:
    """Convenience function to encrypt a secret with a master key."""
    return SecretEncryptor(master_key).encrypt(secret)


def decrypt_secret(value: str, master_key: Optional[str]) -> str:
    """Decrypt ``value`` if it is a Fernet token, else return it unchanged.

    Raises:
        InvalidEncodingError: If the value is encrypted but no master key is
            configured, or decryption fails
    """
    if not is_encrypted(value):
        return value

    if not master_key:
        raise InvalidEncodingError("secret is encrypted but MASTER_KEY is not set")

    logger.debug("Decrypting secret with configured master key")
    return SecretEncryptor(master_key).decrypt(value)
