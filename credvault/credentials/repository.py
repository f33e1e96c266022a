"""
Persistence collaborator for the credential vault.

The vault only validates, encrypts and shapes records; reads and writes are
delegated to a repository. Retries, timeouts and transaction boundaries are
the repository's (and its session's) responsibility.
"""

import logging
from typing import Any, Dict, Optional, Protocol

from sqlalchemy.orm import Session

from credvault.models.credential_vault import CredentialVaultRecord

logger = logging.getLogger(__name__)

# Columns echoed back from create(); secret_enc and meta are never echoed
CREATED_FIELDS = (
    "id",
    "secret_ref",
    "tenant_id",
    "provider",
    "integration_id",
    "kind",
    "created_at",
)

RESOLVED_FIELDS = CREATED_FIELDS + ("secret_enc", "meta", "updated_at", "rotated_at")


class CredentialRepository(Protocol):
    """Storage interface consumed by CredentialVault."""

    def create(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Persist one record; return its non-secret metadata."""
        ...

    def find_first(self, filter: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Return the first record matching secret_ref (and tenant_id if given)."""
        ...


def _select(row: CredentialVaultRecord, fields) -> Dict[str, Any]:
    return {name: getattr(row, name) for name in fields}


class SqlAlchemyCredentialRepository:
    """
    CredentialRepository backed by the credential_vault table.

    create() flushes but does not commit; the caller owns the transaction.
    """

    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, record: Dict[str, Any]) -> Dict[str, Any]:
        row = CredentialVaultRecord(**record)
        self.db.add(row)
        self.db.flush()
        return _select(row, CREATED_FIELDS)

    def find_first(self, filter: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        query = self.db.query(CredentialVaultRecord).filter(
            CredentialVaultRecord.secret_ref == filter["secret_ref"]
        )
        if filter.get("tenant_id"):
            query = query.filter(CredentialVaultRecord.tenant_id == filter["tenant_id"])

        row = query.first()
        if row is None:
            return None
        return _select(row, RESOLVED_FIELDS)
