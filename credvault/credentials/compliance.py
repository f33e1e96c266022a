"""
Credentials compliance report.

Summarizes how many integration records still carry raw secrets (token
columns, or secret keys inside their settings/config JSON) versus vault
references. Inputs are plain dicts loaded by the caller; nothing here reads
the database.
"""

import math
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

RAW_CONFIG_KEYS = (
    "access_token",
    "accessToken",
    "refresh_token",
    "refreshToken",
    "token",
    "api_key",
    "apiKey",
    "client_secret",
    "clientSecret",
    "app_secret",
    "appSecret",
    "verify_token",
    "verifyToken",
    "serviceAccountJson",
    "private_key",
    "privateKey",
    "secret",
    "password",
    "developerToken",
)

DEFAULT_SAMPLE_SIZE = 25
MAX_SAMPLE_SIZE = 100


def _clamp_int(value: Any, minimum: int, maximum: int, fallback: int) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(number):
        return fallback
    return min(max(math.floor(number), minimum), maximum)


def _has_raw_keys(value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    return any(key in value for key in RAW_CONFIG_KEYS)


def _has_credential_ref(config: Any) -> bool:
    if not isinstance(config, dict):
        return False
    if config.get("credentialRef"):
        return True
    refs = config.get("credentialsRefs")
    return isinstance(refs, dict) and len(refs) > 0


def classify_integration_exposure(item: Mapping[str, Any]) -> Dict[str, bool]:
    """Classify one integration record's secret exposure."""
    has_raw_columns = bool(
        item.get("access_token")
        or item.get("refresh_token")
        or item.get("access_token_encrypted")
    )
    has_raw_settings = _has_raw_keys(item.get("settings"))
    has_raw_config = _has_raw_keys(item.get("config"))

    return {
        "has_raw_columns": has_raw_columns,
        "has_raw_settings": has_raw_settings,
        "has_raw_config": has_raw_config,
        "has_credential_ref": _has_credential_ref(item.get("config")),
        "is_exposed": has_raw_columns or has_raw_settings or has_raw_config,
    }


def build_credentials_compliance_report(
    integrations: Iterable[Mapping[str, Any]],
    vault_count: int,
    vault_by_provider: Optional[Mapping[str, int]] = None,
    tenant_id: Optional[str] = None,
    sample_size: Any = DEFAULT_SAMPLE_SIZE,
) -> Dict[str, Any]:
    """
    Build the compliance report.

    Args:
        integrations: Integration rows (id, tenant_id, provider, status,
            updated_at, raw token columns, settings, config)
        vault_count: Number of vault entries in scope
        vault_by_provider: Vault entry counts keyed by provider
        tenant_id: Tenant the report is scoped to, if any
        sample_size: Exposed items to include, clamped to [1, 100]

    Returns:
        Report dict with totals, per-provider counts and exposed samples
    """
    sample_size = _clamp_int(sample_size, 1, MAX_SAMPLE_SIZE, DEFAULT_SAMPLE_SIZE)

    by_provider: Dict[str, Dict[str, int]] = {}
    exposed_items: List[Dict[str, Any]] = []
    counts: Counter = Counter()
    total = 0

    for integration in integrations:
        total += 1
        exposure = classify_integration_exposure(integration)
        provider = integration.get("provider") or "UNKNOWN"
        bucket = by_provider.setdefault(
            provider, {"total": 0, "exposed": 0, "with_credential_ref": 0}
        )
        bucket["total"] += 1

        if exposure["has_credential_ref"]:
            counts["with_credential_ref"] += 1
            bucket["with_credential_ref"] += 1
        for flag in ("has_raw_columns", "has_raw_settings", "has_raw_config"):
            if exposure[flag]:
                counts[flag] += 1

        if exposure["is_exposed"]:
            bucket["exposed"] += 1
            exposed_items.append({
                "id": integration.get("id"),
                "tenant_id": integration.get("tenant_id"),
                "provider": provider,
                "status": integration.get("status"),
                "updated_at": integration.get("updated_at"),
                "exposure": exposure,
            })

    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "tenant_id": tenant_id,
        "totals": {
            "integrations": total,
            "integrations_exposed": len(exposed_items),
            "integrations_with_credential_ref": counts["with_credential_ref"],
            "vault_entries": vault_count,
            "raw_columns": counts["has_raw_columns"],
            "raw_settings": counts["has_raw_settings"],
            "raw_config": counts["has_raw_config"],
        },
        "by_provider": by_provider,
        "vault_by_provider": {
            (provider or "UNKNOWN"): count
            for provider, count in (vault_by_provider or {}).items()
        },
        "samples": {"exposed_integrations": exposed_items[:sample_size]},
    }
