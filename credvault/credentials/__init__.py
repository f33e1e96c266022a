"""
Credentials module for tenant integration secrets.

This module provides:
- Key configuration validation (fail fast on missing or ambiguous keys)
- AES-256-GCM cipher adapter with multi-key decrypt for rotation windows
- Credential vault that turns secrets into vault:// references
- Loose-credential guard for untrusted nested payloads
- Audit logging with automatic redaction

SECURITY:
- Secrets are encrypted at rest using ENCRYPTION_KEY / CRYPTO_KEY
- No plaintext secrets outside process memory
- Secrets NEVER appear in logs, errors or API responses

Usage:
    from credvault.credentials import CredentialVault, assert_no_loose_credentials

    assert_no_loose_credentials(payload["settings"], "integration.create.settings")
    stored = await vault.store_credential(tenant_id, "meta", secret=token)
"""

from credvault.credentials.encryption import (
    CipherAdapter,
    decrypt_token,
    encrypt_token,
    get_cipher,
    rotate_encryption,
    validate_encryption_ready,
)
from credvault.credentials.guard import (
    SECRET_REF_PREFIX,
    assert_no_loose_credentials,
    collect_loose_credential_paths,
    is_secret_ref,
)
from credvault.credentials.key_config import (
    KeyCandidate,
    KeyConfiguration,
    KeyValidationResult,
    assert_key_configuration,
    build_candidates,
    resolve_key_configuration,
)
from credvault.credentials.redaction import (
    AuditEventType,
    CredentialAuditLogger,
    CredentialLoggingFilter,
    redact_credential_data,
    setup_credential_logging,
)
from credvault.credentials.repository import (
    CredentialRepository,
    SqlAlchemyCredentialRepository,
)
from credvault.credentials.vault import (
    CredentialMetadata,
    CredentialVault,
    ResolvedCredential,
    build_secret_ref,
    sanitize_json,
)

__all__ = [
    # Key configuration
    "KeyCandidate",
    "KeyConfiguration",
    "KeyValidationResult",
    "assert_key_configuration",
    "build_candidates",
    "resolve_key_configuration",
    # Cipher
    "CipherAdapter",
    "decrypt_token",
    "encrypt_token",
    "get_cipher",
    "rotate_encryption",
    "validate_encryption_ready",
    # Vault
    "CredentialMetadata",
    "CredentialRepository",
    "CredentialVault",
    "ResolvedCredential",
    "SqlAlchemyCredentialRepository",
    "build_secret_ref",
    "sanitize_json",
    # Guard
    "SECRET_REF_PREFIX",
    "assert_no_loose_credentials",
    "collect_loose_credential_paths",
    "is_secret_ref",
    # Redaction & Audit
    "AuditEventType",
    "CredentialAuditLogger",
    "CredentialLoggingFilter",
    "redact_credential_data",
    "setup_credential_logging",
]
