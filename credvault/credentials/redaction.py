"""
Credential redaction and audit logging utilities.

SECURITY REQUIREMENTS:
- Secret values NEVER appear in logs
- ALLOWED in logs: secret_ref, credential_id, tenant_id, provider,
  key-source names and structural paths
- Vault operations emit audit events; audit storage is owned elsewhere

Audit Events:
- credential.stored
- credential.accessed
- credential.error

Usage:
    from credvault.credentials.redaction import CredentialAuditLogger, AuditEventType

    audit = CredentialAuditLogger(tenant_id)
    audit.log(
        event_type=AuditEventType.CREDENTIAL_STORED,
        credential_id=record["id"],
        provider="META",
    )
"""

import logging
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from credvault.credentials.guard import is_sensitive_key

logger = logging.getLogger(__name__)

REDACTED_VALUE = "[REDACTED]"


class AuditEventType(str, Enum):
    """Credential audit event types."""
    CREDENTIAL_STORED = "credential.stored"
    CREDENTIAL_ACCESSED = "credential.accessed"
    CREDENTIAL_ERROR = "credential.error"


# Token shapes that must never survive into a log line
SECRET_VALUE_PATTERNS = [
    re.compile(r"(bearer\s+[a-zA-Z0-9._~+/=-]+)", re.IGNORECASE),
    re.compile(r"(shpat_[a-fA-F0-9]+)"),  # Shopify access tokens
    re.compile(r"(shpss_[a-zA-Z0-9]+)"),  # Shopify shared secrets
    re.compile(r"(ya29\.[a-zA-Z0-9_-]+)"),  # Google OAuth tokens
    re.compile(r"(EAA[a-zA-Z0-9]{20,})"),  # Facebook tokens
    re.compile(r"(-----BEGIN [A-Z ]*PRIVATE KEY-----[\s\S]*?-----END [A-Z ]*PRIVATE KEY-----)"),
]

# Substrings that mark a key as secret-bearing for redaction purposes
_SECRET_KEY_FRAGMENTS = (
    "token", "secret", "credential", "auth", "bearer",
    "oauth", "api_key", "apikey", "password", "private_key",
)

# Identifiers that look secret-ish by name but are safe to log
SAFE_LOG_KEYS = frozenset({
    "secret_ref",
    "credential_id",
    "account_name",
    "connector_name",
})


def is_credential_secret_key(key: str) -> bool:
    """
    Check if a key name indicates a credential secret.

    Args:
        key: The key name to check

    Returns:
        True if the key likely contains a secret
    """
    if key in SAFE_LOG_KEYS:
        return False
    if is_sensitive_key(key):
        return True
    key_lower = key.lower()
    return any(fragment in key_lower for fragment in _SECRET_KEY_FRAGMENTS)


def redact_credential_value(value: Any) -> Any:
    """Redact token-shaped substrings from a string value."""
    if not isinstance(value, str):
        return value

    result = value
    for pattern in SECRET_VALUE_PATTERNS:
        result = pattern.sub(REDACTED_VALUE, result)
    return result


def redact_credential_data(data: Any, _depth: int = 0) -> Any:
    """
    Recursively redact credential secrets from a data structure.

    SECURITY:
    - Always use this before logging credential-related data

    Returns:
        Copy of data with secrets redacted
    """
    # Prevent infinite recursion
    if _depth > 10:
        return REDACTED_VALUE

    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            if is_credential_secret_key(str(key)):
                result[key] = REDACTED_VALUE
            else:
                result[key] = redact_credential_data(value, _depth + 1)
        return result

    if isinstance(data, (list, tuple)):
        return [redact_credential_data(item, _depth + 1) for item in data]

    if isinstance(data, str):
        return redact_credential_value(data)

    return data


class CredentialAuditLogger:
    """
    Structured audit logger for vault operations.

    SECURITY:
    - Secrets are NEVER logged
    - metadata is redacted before emission
    """

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        self.logger = logging.getLogger("credentials.audit")

    def log(
        self,
        event_type: AuditEventType,
        credential_id: str,
        provider: str,
        secret_ref: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Log an audit event.

        Args:
            event_type: Type of audit event
            credential_id: Vault record id
            provider: Integration provider
            secret_ref: Vault reference (safe to log)
            metadata: Additional context (will be redacted)
        """
        safe_metadata = redact_credential_data(metadata) if metadata else {}

        audit_record = {
            "event_type": event_type.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "tenant_id": self.tenant_id,
            "credential_id": credential_id,
            "provider": provider,
            "secret_ref": secret_ref,
            "audit_metadata": safe_metadata,
        }

        self.logger.info(
            f"Credential audit: {event_type.value}",
            extra=audit_record
        )

    def log_error(
        self,
        credential_id: str,
        provider: str,
        error: str,
        secret_ref: Optional[str] = None,
    ) -> None:
        """Log a credential error; the message is redacted first."""
        self.log(
            event_type=AuditEventType.CREDENTIAL_ERROR,
            credential_id=credential_id,
            provider=provider,
            secret_ref=secret_ref,
            metadata={"error": redact_credential_value(error)},
        )


class CredentialLoggingFilter(logging.Filter):
    """
    Logging filter that redacts credential secrets from log records.

    Usage:
        logger.addFilter(CredentialLoggingFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact_credential_value(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = redact_credential_data(record.args)
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    redact_credential_value(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )

        for key in list(record.__dict__.keys()):
            value = record.__dict__[key]
            if is_credential_secret_key(key):
                record.__dict__[key] = REDACTED_VALUE
            elif isinstance(value, str):
                record.__dict__[key] = redact_credential_value(value)

        return True


def setup_credential_logging() -> None:
    """
    Configure credential-safe logging.

    Call this during application startup so every vault logger has the
    redaction filter applied.
    """
    redaction_filter = CredentialLoggingFilter()

    credential_loggers = [
        "credentials.audit",
        "credvault.credentials",
        "credvault.credentials.encryption",
        "credvault.credentials.key_config",
        "credvault.credentials.guard",
        "credvault.credentials.vault",
    ]

    for logger_name in credential_loggers:
        logging.getLogger(logger_name).addFilter(redaction_filter)

    logger.info("Credential logging configured with redaction filter")
