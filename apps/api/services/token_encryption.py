"""
API Key Encryption Service

Encrypts and decrypts third-party API keys (Wodify) with Fernet symmetric
encryption. Keys are encrypted at rest and only ever shown as a fingerprint.

ARCHITECTURE:
- Uses cryptography library (Fernet)
- Encryption key from settings (TOKEN_ENCRYPTION_KEY)
- Never stores plain credentials
"""
import hashlib
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from core.config import settings

logger = logging.getLogger(__name__)


class TokenEncryption:
    """Handles encryption/decryption of stored API keys."""

    def __init__(self, encryption_key: Optional[str] = None):
        encryption_key = encryption_key or settings.TOKEN_ENCRYPTION_KEY

        if not encryption_key:
            # SECURITY: Fail hard in production - no auto-generated keys
            if settings.ENVIRONMENT == "production":
                raise RuntimeError(
                    "TOKEN_ENCRYPTION_KEY must be set in production. "
                    "Generate one with Fernet.generate_key()."
                )
            logger.warning("TOKEN_ENCRYPTION_KEY not set. Generating temporary key (NOT FOR PRODUCTION)")
            encryption_key = Fernet.generate_key().decode()

        if isinstance(encryption_key, str):
            encryption_key = encryption_key.encode()

        try:
            self.cipher = Fernet(encryption_key)
        except ValueError as e:
            logger.error(f"Failed to initialize Fernet cipher: {e}")
            raise ValueError(f"Invalid encryption key format: {e}")

    def encrypt(self, plaintext: str) -> Optional[str]:
        """
        Encrypt a plaintext API key.

        Returns:
            Encrypted key (base64 string) or None for empty input
        """
        if not plaintext:
            return None
        return self.cipher.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> Optional[str]:
        """
        Decrypt a stored API key.

        Returns:
            Plain key, or None if the ciphertext is empty or was encrypted
            under a different key
        """
        if not ciphertext:
            return None
        try:
            return self.cipher.decrypt(ciphertext.encode()).decode()
        except InvalidToken:
            logger.error("API key decryption failed: token invalid or key rotated")
            return None


def key_fingerprint(api_key: str) -> str:
    """Short display form: last four characters plus a hash prefix."""
    digest = hashlib.sha256(api_key.encode()).hexdigest()[:8]
    return f"...{api_key[-4:]} ({digest})"


# Global instance
_token_encryption: Optional[TokenEncryption] = None


def get_token_encryption() -> TokenEncryption:
    """Get or create global encryption instance."""
    global _token_encryption
    if _token_encryption is None:
        _token_encryption = TokenEncryption()
    return _token_encryption


def encrypt_token(token: Optional[str]) -> Optional[str]:
    """Convenience function to encrypt an API key."""
    if not token:
        return None
    return get_token_encryption().encrypt(token)


def decrypt_token(token: Optional[str]) -> Optional[str]:
    """Convenience function to decrypt an API key."""
    if not token:
        return None
    return get_token_encryption().decrypt(token)
