"""SQLAlchemy models."""

from credvault.models.credential_vault import CredentialVaultRecord

__all__ = ["CredentialVaultRecord"]
