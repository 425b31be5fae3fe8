"""Secret handling for tenant relay credentials."""

from .secrets import SecretDecryptionError, decrypt_secret, encrypt_secret

__all__ = ["SecretDecryptionError", "decrypt_secret", "encrypt_secret"]
