"""
Credential vault: the only sanctioned way to persist or retrieve a secret.

SECURITY REQUIREMENTS:
- Secrets are encrypted with the current preferred key before storage
- Callers receive an opaque reference ("vault://credential/<id>"), never the
  ciphertext or the raw secret, on write
- Tenant isolation is enforced in the lookup itself
- Secret values are never logged

Usage:
    vault = CredentialVault(SqlAlchemyCredentialRepository(db_session))

    stored = await vault.store_credential(
        tenant_id=tenant_id,
        provider="meta",
        secret={"access_token": "..."},
    )
    settings["accessToken"] = stored.secret_ref

    resolved = await vault.resolve_credential(stored.secret_ref, tenant_id=tenant_id)
    client = MetaClient(resolved.secret["access_token"])
"""

import json
import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Optional, Union

from credvault.credentials.encryption import CipherAdapter, get_cipher
from credvault.credentials.guard import SECRET_REF_PREFIX, is_secret_ref
from credvault.credentials.redaction import AuditEventType, CredentialAuditLogger
from credvault.credentials.repository import CredentialRepository
from credvault.platform.errors import CipherError, CredentialVaultError, ErrorCode

logger = logging.getLogger(__name__)

DEFAULT_KIND = "GENERIC"


@dataclass
class CredentialMetadata:
    """
    Metadata returned from store_credential.

    SECURITY: Does NOT include the secret or its ciphertext.
    """
    id: str
    secret_ref: str
    tenant_id: str
    provider: str
    integration_id: Optional[str]
    kind: str
    created_at: Optional[datetime] = None


@dataclass
class ResolvedCredential:
    """A vault record with its decrypted secret (handle with care!)."""
    id: str
    secret_ref: str
    tenant_id: str
    provider: str
    integration_id: Optional[str]
    kind: str
    meta: Any
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    rotated_at: Optional[datetime]
    secret: Any = field(repr=False)


def _to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def sanitize_json(value: Any) -> Any:
    """
    Canonicalize a value into a JSON-safe structure.

    - datetimes/dates become ISO-8601 strings
    - non-finite floats and Decimals become None
    - Decimals are kept exact as strings
    - dict keys are stringified, nested values sanitized recursively
    - sets become lists in a stable sorted order
    - anything else unknown becomes str(value)
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, Decimal):
        return str(value) if value.is_finite() else None
    if isinstance(value, str):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(key): sanitize_json(entry) for key, entry in value.items()}
    if isinstance(value, (list, tuple)):
        return [sanitize_json(entry) for entry in value]
    if isinstance(value, (set, frozenset)):
        return sorted(
            (sanitize_json(entry) for entry in value),
            key=lambda entry: json.dumps(entry, sort_keys=True),
        )
    return str(value)


def encode_secret(secret: Any) -> str:
    """Serialize a secret deterministically; strings pass through unchanged."""
    if isinstance(secret, str):
        return secret
    return json.dumps(sanitize_json(secret), sort_keys=True, separators=(",", ":"))


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-JSON constant: {name}")


def decode_secret(text: Optional[str]) -> Any:
    """Parse structured secrets; fall back to the raw string."""
    if not text or not isinstance(text, str):
        return None
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except ValueError:
        return text


def build_secret_ref(credential_id: str) -> str:
    return f"{SECRET_REF_PREFIX}credential/{credential_id}"


def is_usable_secret(secret: Any) -> bool:
    """A non-blank string, a non-empty structure, or any other scalar."""
    if secret is None:
        return False
    if isinstance(secret, str):
        return bool(secret.strip())
    if isinstance(secret, (dict, list, tuple)):
        return len(secret) > 0
    return True


def _parse_rotated_at(value: Union[str, datetime, None]) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))


class CredentialVault:
    """
    Tenant-scoped secret store that hands out references instead of secrets.

    The repository may be None when persistence is not wired up; storing then
    fails with CREDENTIAL_VAULT_UNAVAILABLE and resolving returns None.
    """

    def __init__(
        self,
        repository: Optional[CredentialRepository],
        cipher: Optional[CipherAdapter] = None,
        audit_factory: Callable[[str], CredentialAuditLogger] = CredentialAuditLogger,
    ):
        """
        Args:
            repository: Persistence collaborator (create / find_first)
            cipher: Cipher adapter (defaults to the process-wide adapter)
            audit_factory: Builds an audit logger for a tenant id
        """
        self.repository = repository
        self._cipher = cipher
        self._audit_factory = audit_factory

    @property
    def cipher(self) -> CipherAdapter:
        return self._cipher or get_cipher()

    async def store_credential(
        self,
        tenant_id: str,
        provider: str,
        secret: Any,
        integration_id: Optional[str] = None,
        kind: Optional[str] = None,
        meta: Any = None,
        rotated_at: Union[str, datetime, None] = None,
    ) -> CredentialMetadata:
        """
        Encrypt and persist a secret.

        Args:
            tenant_id: Owning tenant (required)
            provider: Integration provider (required, stored upper-cased)
            secret: Non-blank string or non-empty structure
            integration_id: Optional owning integration
            kind: Free-form classification (default GENERIC)
            meta: Non-secret metadata, sanitized to JSON-safe form
            rotated_at: Optional rotation timestamp

        Returns:
            CredentialMetadata including secret_ref

        Raises:
            CredentialVaultError: CREDENTIAL_VAULT_UNAVAILABLE, CREDENTIAL_VAULT_BAD_INPUT
                or CREDENTIAL_SECRET_REQUIRED
            CipherError: If no encryption key is configured
        """
        if self.repository is None:
            raise CredentialVaultError(
                ErrorCode.VAULT_UNAVAILABLE, "Credential vault storage unavailable"
            )

        tenant = _to_text(tenant_id)
        provider_text = _to_text(provider)
        if not tenant or not provider_text:
            raise CredentialVaultError(
                ErrorCode.BAD_INPUT, "tenant_id and provider are required"
            )

        if not is_usable_secret(secret):
            raise CredentialVaultError(ErrorCode.SECRET_REQUIRED, "secret is required")

        credential_id = str(uuid.uuid4())
        secret_ref = build_secret_ref(credential_id)
        secret_enc = self.cipher.encrypt(encode_secret(secret))

        created = self.repository.create({
            "id": credential_id,
            "secret_ref": secret_ref,
            "tenant_id": tenant,
            "provider": provider_text.upper(),
            "integration_id": _to_text(integration_id),
            "kind": _to_text(kind) or DEFAULT_KIND,
            "secret_enc": secret_enc,
            "meta": sanitize_json(meta),
            "rotated_at": _parse_rotated_at(rotated_at),
        })

        stored = CredentialMetadata(
            id=created["id"],
            secret_ref=created["secret_ref"],
            tenant_id=created["tenant_id"],
            provider=created["provider"],
            integration_id=created.get("integration_id"),
            kind=created["kind"],
            created_at=created.get("created_at"),
        )

        self._audit_factory(tenant).log(
            event_type=AuditEventType.CREDENTIAL_STORED,
            credential_id=stored.id,
            provider=stored.provider,
            secret_ref=stored.secret_ref,
            metadata={"kind": stored.kind, "integration_id": stored.integration_id},
        )
        logger.info(
            "Credential stored",
            extra={
                "credential_id": stored.id,
                "tenant_id": tenant,
                "provider": stored.provider,
                "secret_ref": stored.secret_ref,
            }
        )
        return stored

    async def resolve_credential(
        self,
        secret_ref: str,
        tenant_id: Optional[str] = None,
    ) -> Optional[ResolvedCredential]:
        """
        Look up a reference and decrypt its secret.

        Returns None for non-vault references, unknown references, records
        owned by another tenant, or when storage is not wired up.

        Raises:
            CipherError: If the stored payload cannot be decrypted
        """
        if self.repository is None or not is_secret_ref(secret_ref):
            return None

        where: Dict[str, Any] = {"secret_ref": secret_ref.strip()}
        tenant = _to_text(tenant_id)
        if tenant:
            where["tenant_id"] = tenant

        record = self.repository.find_first(where)
        if not record:
            return None

        audit = self._audit_factory(record["tenant_id"])
        try:
            decrypted = self.cipher.decrypt(record["secret_enc"])
        except CipherError as e:
            audit.log_error(
                credential_id=record["id"],
                provider=record["provider"],
                error=e.code,
                secret_ref=record["secret_ref"],
            )
            raise

        audit.log(
            event_type=AuditEventType.CREDENTIAL_ACCESSED,
            credential_id=record["id"],
            provider=record["provider"],
            secret_ref=record["secret_ref"],
        )

        return ResolvedCredential(
            id=record["id"],
            secret_ref=record["secret_ref"],
            tenant_id=record["tenant_id"],
            provider=record["provider"],
            integration_id=record.get("integration_id"),
            kind=record.get("kind") or DEFAULT_KIND,
            meta=record.get("meta"),
            created_at=record.get("created_at"),
            updated_at=record.get("updated_at"),
            rotated_at=record.get("rotated_at"),
            secret=decode_secret(decrypted),
        )
