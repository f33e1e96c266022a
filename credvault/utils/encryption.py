"""
Encryption utilities for secure credential storage.

Implements key material resolution and the AES-256-GCM payload frame used
for storing secrets at rest.

SECURITY:
- Uses AES-256-GCM for authenticated encryption
- Each encryption uses a unique random nonce
- Key must be exactly 32 bytes (256 bits); malformed keys are rejected,
  never truncated or padded

Payload frame (base64 of):
    IV (12 bytes) || auth tag (16 bytes) || ciphertext (N bytes)

Usage:
    from credvault.utils.encryption import parse_fixed_key, encrypt_with_key

    key = parse_fixed_key(os.environ["ENCRYPTION_KEY"])
    payload = encrypt_with_key("secret", key)
"""

import base64
import binascii
import hashlib
import hmac
import re
import secrets
import logging
from dataclasses import dataclass
from typing import Optional

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from credvault.platform.errors import MalformedPayloadError

logger = logging.getLogger(__name__)


# AES-GCM constants
NONCE_SIZE = 12  # 96 bits, recommended for AES-GCM
TAG_SIZE = 16    # 128 bits, standard for AES-GCM
KEY_SIZE = 32    # 256 bits for AES-256
MIN_PAYLOAD_SIZE = NONCE_SIZE + TAG_SIZE

_HEX_KEY_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def looks_configured(raw: Optional[str]) -> bool:
    """True if a raw source value is present and not blank."""
    return raw is not None and bool(str(raw).strip())


def parse_fixed_key(raw: Optional[str]) -> Optional[bytes]:
    """
    Parse a fixed-format key string.

    Accepts exactly 64 hex characters, or base64 (standard or url-safe,
    padded or not) that decodes to exactly 32 bytes. Any other shape yields None; callers distinguish "absent" from
    "present but invalid" with looks_configured().
    """
    if not looks_configured(raw):
        return None
    trimmed = str(raw).strip()

    if _HEX_KEY_RE.match(trimmed):
        return bytes.fromhex(trimmed)

    # Accept url-safe and unpadded base64 as well as the standard alphabet
    normalized = trimmed.replace("-", "+").replace("_", "/").rstrip("=")
    normalized += "=" * (-len(normalized) % 4)
    try:
        key = base64.b64decode(normalized, validate=True)
    except (binascii.Error, ValueError):
        return None
    return key if len(key) == KEY_SIZE else None


def derive_key_from_passphrase(raw: Optional[str]) -> Optional[bytes]:
    """
    Derive a key from a passphrase-style source.

    The SHA-256 digest of the UTF-8 bytes is used directly as the key, so any
    non-blank value yields a 32-byte key.
    """
    if not looks_configured(raw):
        return None
    return hashlib.sha256(str(raw).encode("utf-8")).digest()


def keys_equal(a: Optional[bytes], b: Optional[bytes]) -> bool:
    """Constant-time key comparison; None never matches."""
    if a is None or b is None:
        return False
    return hmac.compare_digest(a, b)


def generate_key_string() -> str:
    """
    Generate a new random encryption key as base64 string.

    Returns:
        Base64-encoded 32-byte key, suitable for ENCRYPTION_KEY
    """
    return base64.b64encode(secrets.token_bytes(KEY_SIZE)).decode("utf-8")


@dataclass(frozen=True)
class EncryptedPayload:
    """One AES-256-GCM ciphertext with its nonce and tag."""
    nonce: bytes
    tag: bytes
    ciphertext: bytes

    def to_string(self) -> str:
        """Encode as the single base64 storage string."""
        return base64.b64encode(self.nonce + self.tag + self.ciphertext).decode("ascii")

    @classmethod
    def from_string(cls, payload: str) -> "EncryptedPayload":
        """
        Parse a base64 storage string.

        Raises:
            MalformedPayloadError: If the payload is not base64 or is shorter
                than the minimum frame size
        """
        if not isinstance(payload, str):
            raise MalformedPayloadError("Encrypted payload must be a string")
        try:
            raw = base64.b64decode(payload.strip(), validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedPayloadError("Encrypted payload is not valid base64") from e

        if len(raw) < MIN_PAYLOAD_SIZE:
            raise MalformedPayloadError()

        return cls(
            nonce=raw[:NONCE_SIZE],
            tag=raw[NONCE_SIZE:MIN_PAYLOAD_SIZE],
            ciphertext=raw[MIN_PAYLOAD_SIZE:],
        )


def encrypt_with_key(plaintext: str, key: bytes) -> str:
    """
    Encrypt text with AES-256-GCM under a fresh random nonce.

    Returns:
        Base64 payload string (IV || tag || ciphertext)
    """
    nonce = secrets.token_bytes(NONCE_SIZE)
    # AESGCM.encrypt returns ciphertext + tag concatenated
    ciphertext_with_tag = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
    return EncryptedPayload(
        nonce=nonce,
        tag=ciphertext_with_tag[-TAG_SIZE:],
        ciphertext=ciphertext_with_tag[:-TAG_SIZE],
    ).to_string()


def decrypt_with_key(payload: EncryptedPayload, key: bytes) -> str:
    """
    Decrypt a parsed payload with one key.

    Raises:
        cryptography.exceptions.InvalidTag: If authentication fails
    """
    plaintext = AESGCM(key).decrypt(payload.nonce, payload.ciphertext + payload.tag, None)
    return plaintext.decode("utf-8")
