"""
Encryption utilities for storing sensitive data at rest.

Uses Fernet symmetric encryption (AES-128-CBC with HMAC-SHA256)
to encrypt exchange API keys, secrets and passphrases stored on bot rows.

Decryption never falls back to returning the stored value: a token that
does not decrypt is an error, not plaintext.
"""

import logging

from cryptography.fernet import Fernet, InvalidToken

from signalbot.config import settings
from signalbot.exceptions import CredentialError

logger = logging.getLogger(__name__)

_fernet = None


def _get_fernet() -> Fernet:
    """Get or create the Fernet instance from the configured encryption key."""
    global _fernet
    if _fernet is None:
        key = settings.encryption_key
        if not key:
            raise CredentialError(
                "ENCRYPTION_KEY not set. Generate one with "
                "`python -c 'from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())'`."
            )
        try:
            _fernet = Fernet(key.encode() if isinstance(key, str) else key)
        except ValueError as e:
            raise CredentialError(f"ENCRYPTION_KEY is not a valid Fernet key: {e}") from e
    return _fernet


def encrypt_value(plaintext: str) -> str:
    """
    Encrypt a plaintext string and return the ciphertext as a string.

    Args:
        plaintext: The value to encrypt (e.g., an API secret)

    Returns:
        Encrypted string (Fernet token, starts with 'gAAAAA')
    """
    if not plaintext:
        return plaintext
    f = _get_fernet()
    return f.encrypt(plaintext.encode()).decode()


def decrypt_value(ciphertext: str) -> str:
    """
    Decrypt a ciphertext string and return the plaintext.

    Raises:
        CredentialError: the token is malformed or was encrypted with another key
    """
    if not ciphertext:
        return ciphertext
    f = _get_fernet()
    try:
        return f.decrypt(ciphertext.encode()).decode()
    except (InvalidToken, UnicodeDecodeError) as e:
        logger.error("Failed to decrypt value - invalid token or wrong encryption key")
        raise CredentialError("Stored credential could not be decrypted") from e


async def decrypt_secret(ciphertext: str) -> str:
    """Async credential-store entry point used by the credential resolver."""
    return decrypt_value(ciphertext)
