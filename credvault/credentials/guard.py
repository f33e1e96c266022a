"""
Loose-credential guard.

Scans arbitrary nested JSON-like data and reports every path where a
sensitive-looking key holds a plaintext value. Boundary code (integration
settings create/update, ingestion) calls assert_no_loose_credentials() before
anything reaches the vault or generic persistence.

Allowed under a sensitive key:
- empty values (None, blank strings)
- vault references ("vault://...")
- reference objects ({"secretRef": "vault://..."} and aliases)

Paths use "." for object keys and "[i]" for list indexes,
e.g. "settings.accessToken", "items[2].apiKey".
"""

import logging
import re
from typing import Any, List

from credvault.platform.errors import LooseCredentialError

logger = logging.getLogger(__name__)

SECRET_REF_PREFIX = "vault://"

# Normalized (lowercase, separators removed) secret-ish key names
SENSITIVE_KEYS = frozenset({
    "accesstoken",
    "refreshtoken",
    "token",
    "tokenenc",
    "apikey",
    "appsecret",
    "clientsecret",
    "password",
    "secret",
    "serviceaccountjson",
    "privatekey",
    "developertoken",
    "webhooksecret",
    "signingsecret",
    "bearertoken",
})

SECRET_REF_FIELDS = ("secretRef", "secret_ref", "ref", "vaultRef", "vault_ref")

_SEPARATORS_RE = re.compile(r"[\s\-_.]+")


def normalize_key(key: Any) -> str:
    """Lowercase a key and strip whitespace, hyphen, underscore and dot separators."""
    return _SEPARATORS_RE.sub("", str(key if key is not None else "").strip().lower())


def is_sensitive_key(key: Any) -> bool:
    return normalize_key(key) in SENSITIVE_KEYS


def is_secret_ref(value: Any) -> bool:
    """True if value is a vault reference string."""
    return isinstance(value, str) and value.strip().startswith(SECRET_REF_PREFIX)


def is_secret_reference_object(value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    for field_name in SECRET_REF_FIELDS:
        ref = value.get(field_name)
        if ref:
            return is_secret_ref(ref)
    return False


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def _is_exempt(value: Any) -> bool:
    return _is_empty(value) or is_secret_ref(value) or is_secret_reference_object(value)


def _join(base: str, key: str) -> str:
    return f"{base}.{key}" if base else key


def collect_loose_credential_paths(value: Any, base_path: str = "") -> List[str]:
    """
    Collect paths of plaintext values held under sensitive keys.

    Args:
        value: Any nested structure of dicts, lists and scalars
        base_path: Path prefix for the current node

    Returns:
        Offending paths in traversal order
    """
    paths: List[str] = []

    if isinstance(value, (list, tuple)):
        for index, entry in enumerate(value):
            paths.extend(collect_loose_credential_paths(entry, f"{base_path}[{index}]"))
        return paths

    if not isinstance(value, dict):
        return paths

    for key, entry in value.items():
        path = _join(base_path, str(key))
        if is_sensitive_key(key):
            if not _is_exempt(entry):
                paths.append(path)
            continue
        paths.extend(collect_loose_credential_paths(entry, path))

    return paths


def assert_no_loose_credentials(value: Any, context: str = "payload") -> None:
    """
    Reject a payload that carries plaintext credentials.

    Raises:
        LooseCredentialError: Carrying the offending paths and the context
    """
    paths = collect_loose_credential_paths(value)
    if not paths:
        return

    logger.warning(
        "Loose credential blocked",
        extra={"context": context, "paths": paths},
    )
    raise LooseCredentialError(context=context, paths=paths)
