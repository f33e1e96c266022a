"""
CredentialVaultRecord model - encrypted storage for tenant integration secrets.

SECURITY REQUIREMENTS:
- secret_enc always holds an AES-256-GCM payload, never plaintext
- Records are addressed by secret_ref ("vault://credential/<id>")
- Tenant-scoped access only

Lifecycle:
- One row per store call; rotation stores a new row and callers update
  their references
"""

import uuid

from sqlalchemy import JSON, Column, DateTime, Index, String, Text

from credvault.db_base import Base
from credvault.models.base import TimestampMixin, TenantScopedMixin


class CredentialVaultRecord(Base, TimestampMixin, TenantScopedMixin):
    """Vault entry. secret_enc is NEVER exposed in API responses or logs."""

    __tablename__ = "credential_vault"

    id = Column(
        String(255),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        comment="Primary key (UUID)"
    )
    secret_ref = Column(
        String(512),
        nullable=False,
        unique=True,
        comment="Opaque reference (vault://credential/<id>)"
    )
    provider = Column(
        String(100),
        nullable=False,
        comment="Integration provider (upper-cased)"
    )
    integration_id = Column(
        String(255),
        nullable=True,
        comment="Owning integration, if any"
    )
    kind = Column(
        String(100),
        nullable=False,
        default="GENERIC",
        comment="Free-form classification"
    )

    # Encrypted secret - NEVER log this value
    secret_enc = Column(
        Text,
        nullable=False,
        comment="AES-256-GCM payload - NEVER log"
    )
    meta = Column(
        JSON(none_as_null=True),
        nullable=True,
        comment="Non-secret JSON metadata"
    )
    rotated_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the underlying secret was rotated"
    )

    __table_args__ = (
        Index("ix_credential_vault_tenant_provider", "tenant_id", "provider"),
    )

    def __repr__(self) -> str:
        """Safe repr - NEVER include the encrypted secret."""
        return (
            f"<CredentialVaultRecord("
            f"id={self.id}, "
            f"provider={self.provider}, "
            f"kind={self.kind})>"
        )
