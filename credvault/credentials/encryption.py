"""
Credential encryption: the cipher adapter over the configured key candidates.

SECURITY REQUIREMENTS:
- AES-256-GCM with a fresh random 12-byte IV per encryption
- Encrypt always uses the most preferred candidate (current primary key)
- Decrypt tries every candidate in order, so payloads written under the
  previous key keep working for the whole rotation window
- Plaintext and key bytes are never logged

Usage:
    from credvault.credentials.encryption import encrypt_token, decrypt_token

    # Encrypt before storage
    encrypted = await encrypt_token(access_token)

    # Decrypt for use (in memory only)
    plaintext = await decrypt_token(encrypted)
"""

import logging
from typing import Iterable, List, Optional

from cryptography.exceptions import InvalidTag

from credvault.config.encryption_keys import (
    DEFAULT_PREFERRED_ORDER,
    KeySource,
    SettingsProvider,
    get_key_settings,
)
from credvault.credentials.key_config import (
    KeyCandidate,
    KeyValidationResult,
    assert_key_configuration,
    build_candidates,
)
from credvault.platform.errors import (
    CipherError,
    DecryptionFailedError,
    ErrorCode,
)
from credvault.utils.encryption import EncryptedPayload, decrypt_with_key, encrypt_with_key

logger = logging.getLogger(__name__)


class CipherAdapter:
    """
    Authenticated encryption over an ordered list of candidate keys.

    Candidates are rebuilt from the settings provider on every call; nothing
    is cached across configuration changes.
    """

    def __init__(
        self,
        preferred_order: Iterable[KeySource] = DEFAULT_PREFERRED_ORDER,
        settings_provider: Optional[SettingsProvider] = None,
    ):
        """
        Args:
            preferred_order: Sources tried first, most preferred first
            settings_provider: Callable returning KeySettings (defaults to
                reading the process environment)
        """
        self.preferred_order = tuple(KeySource(s) for s in preferred_order)
        self._settings_provider = settings_provider or get_key_settings

    def candidates(self) -> List[KeyCandidate]:
        """Current ordered candidates; raises if none are usable."""
        keys = build_candidates(self.preferred_order, self._settings_provider())
        if not keys:
            logger.error(
                "Encryption not configured",
                extra={"preferred_order": [s.value for s in self.preferred_order]},
            )
            raise CipherError(
                ErrorCode.NO_KEY_CONFIGURED,
                "Missing encryption key (set ENCRYPTION_KEY or CRYPTO_KEY)",
            )
        return keys

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt text under the most preferred key.

        Returns:
            Base64 payload (IV || tag || ciphertext)
        """
        if not isinstance(plaintext, str):
            raise TypeError("plaintext must be a string")
        candidate = self.candidates()[0]
        return encrypt_with_key(plaintext, candidate.key)

    def decrypt(self, payload: str) -> str:
        """
        Decrypt a payload, trying each candidate key in order.

        Raises:
            MalformedPayloadError: If the payload frame is too short or not base64
            DecryptionFailedError: If no candidate authenticates the payload;
                the last InvalidTag is chained as the cause
        """
        if not isinstance(payload, str):
            raise TypeError("payload must be a string")
        parsed = EncryptedPayload.from_string(payload)
        keys = self.candidates()

        last_error: Optional[InvalidTag] = None
        for candidate in keys:
            try:
                return decrypt_with_key(parsed, candidate.key)
            except InvalidTag as e:
                last_error = e

        attempted = [c.source.value for c in keys]
        logger.error(
            "Payload decryption failed",
            extra={"attempted_sources": attempted},
        )
        raise DecryptionFailedError(attempted) from last_error


_default_adapter = CipherAdapter()


def get_cipher() -> CipherAdapter:
    """The process-wide adapter (reads the environment on every call)."""
    return _default_adapter


async def encrypt_token(plaintext: str, cipher: Optional[CipherAdapter] = None) -> str:
    """
    Encrypt a secret for storage.

    Raises:
        ValueError: If plaintext is empty
        CipherError: If no key is configured
    """
    if not plaintext:
        raise ValueError("Cannot encrypt empty token")
    encrypted = (cipher or get_cipher()).encrypt(plaintext)
    logger.debug(
        "Token encrypted successfully",
        extra={"operation": "encrypt_token", "result": "success"}
    )
    return encrypted


async def decrypt_token(ciphertext: str, cipher: Optional[CipherAdapter] = None) -> str:
    """
    Decrypt a stored secret.

    SECURITY: the decrypted value must NEVER be logged.

    Raises:
        ValueError: If ciphertext is empty
        CipherError: On malformed payloads, missing keys or failed authentication
    """
    if not ciphertext:
        raise ValueError("Cannot decrypt empty ciphertext")
    return (cipher or get_cipher()).decrypt(ciphertext)


async def rotate_encryption(
    old_ciphertext: str,
    cipher: Optional[CipherAdapter] = None,
) -> str:
    """
    Re-encrypt a payload under the current preferred key.

    Used to backfill records before a rotation window is closed.
    """
    plaintext = await decrypt_token(old_ciphertext, cipher)
    try:
        return await encrypt_token(plaintext, cipher)
    finally:
        # Python doesn't guarantee immediate memory clearing
        del plaintext


def validate_encryption_ready(
    settings_provider: Optional[SettingsProvider] = None,
) -> KeyValidationResult:
    """
    Validate that encryption is properly configured.

    Call this during application startup to fail fast on missing or
    ambiguous key configuration.

    Raises:
        KeyConfigurationError: If validation fails
    """
    result = assert_key_configuration(settings_provider)
    logger.info(
        "Credential encryption validated successfully",
        extra={
            "effective_source": result.effective_source.value,
            "fallback_key_count": result.fallback_key_count,
            "warnings": result.warnings,
        }
    )
    return result
