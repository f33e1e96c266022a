"""
Utility modules for the credential vault.

This package contains key resolution and payload framing helpers.
"""

from credvault.utils.encryption import (
    EncryptedPayload,
    KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    decrypt_with_key,
    derive_key_from_passphrase,
    encrypt_with_key,
    generate_key_string,
    keys_equal,
    looks_configured,
    parse_fixed_key,
)

__all__ = [
    "EncryptedPayload",
    "KEY_SIZE",
    "NONCE_SIZE",
    "TAG_SIZE",
    "decrypt_with_key",
    "derive_key_from_passphrase",
    "encrypt_with_key",
    "generate_key_string",
    "keys_equal",
    "looks_configured",
    "parse_fixed_key",
]
