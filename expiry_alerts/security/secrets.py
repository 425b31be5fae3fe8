"""Encryption of stored tenant relay secrets.

Stored format is ``<iv hex>:<auth tag hex>:<ciphertext hex>`` using
AES-256-GCM with a 16-byte IV. The key is derived from the configured
encryption key with scrypt (N=2**14, r=8, p=1) over a fixed
application salt, matching secrets written by the platform's admin UI.
"""

import hashlib
import os
from functools import lru_cache

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

KEY_SALT = hashlib.sha256(b"durj-oauth-encryption-v1").digest()
IV_LENGTH = 16
TAG_LENGTH = 16


class SecretDecryptionError(Exception):
    """Raised when a stored secret cannot be decrypted."""

    pass


@lru_cache(maxsize=8)
def derive_key(encryption_key: str) -> bytes:
    """Derive the 32-byte AES key (scrypt is slow, so results are cached)."""
    kdf = Scrypt(salt=KEY_SALT, length=32, n=2**14, r=8, p=1)
    return kdf.derive(encryption_key.encode("utf-8"))


def encrypt_secret(plaintext: str, encryption_key: str) -> str:
    """Encrypt ``plaintext`` into the stored ``iv:tag:ciphertext`` form."""
    if not encryption_key:
        raise ValueError("An encryption key is required")

    iv = os.urandom(IV_LENGTH)
    sealed = AESGCM(derive_key(encryption_key)).encrypt(iv, plaintext.encode("utf-8"), None)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
    return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"


def decrypt_secret(stored: str, encryption_key: str) -> str:
    """Decrypt a stored secret.

    Raises:
        SecretDecryptionError: On a missing key, malformed input, or a
            failed authentication check
    """
    if not encryption_key:
        raise SecretDecryptionError("No encryption key configured")
    if not stored:
        raise SecretDecryptionError("Stored secret is empty")

    parts = stored.split(":")
    if len(parts) != 3:
        raise SecretDecryptionError("Stored secret is not in iv:tag:ciphertext format")

    try:
        iv, tag, ciphertext = (bytes.fromhex(part) for part in parts)
    except ValueError as e:
        raise SecretDecryptionError(f"Stored secret is not valid hex: {e}") from e

    if len(iv) != IV_LENGTH or len(tag) != TAG_LENGTH:
        raise SecretDecryptionError("Stored secret has an invalid IV or tag length")

    try:
        plaintext = AESGCM(derive_key(encryption_key)).decrypt(iv, ciphertext + tag, None)
    except InvalidTag as e:
        raise SecretDecryptionError("Authentication tag mismatch (wrong key or tampered data)") from e

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise SecretDecryptionError("Decrypted secret is not valid UTF-8") from e
