"""
Shared pytest fixtures for credential vault tests.

Key configuration is injected through KeySettings snapshots so tests never
depend on the process environment unless they exercise it explicitly.
"""

import base64
import copy
from datetime import datetime, timezone

import pytest

from credvault.config.encryption_keys import KeySettings, KeySource, static_settings
from credvault.credentials.encryption import CipherAdapter


# ============================================================================
# KEY MATERIAL
# ============================================================================

def b64_key(fill: int) -> str:
    """Deterministic base64 32-byte key filled with one byte value."""
    return base64.b64encode(bytes([fill]) * 32).decode("ascii")


@pytest.fixture
def make_key():
    return b64_key


@pytest.fixture
def primary_key() -> str:
    return b64_key(7)


@pytest.fixture
def previous_key() -> str:
    return b64_key(9)


@pytest.fixture
def make_cipher():
    """Build a CipherAdapter over a fixed KeySettings snapshot."""

    def _make(settings: KeySettings, preferred_order=(KeySource.ENCRYPTION_KEY, KeySource.CRYPTO_KEY)):
        return CipherAdapter(preferred_order, settings_provider=static_settings(settings))

    return _make


@pytest.fixture
def clean_key_env(monkeypatch):
    """Remove key env vars that leak between tests."""
    for key in [
        "ENCRYPTION_KEY",
        "CRYPTO_KEY",
        "ENCRYPTION_KEY_PREVIOUS",
        "CRYPTO_KEY_PREVIOUS",
        "ALLOW_CRYPTO_KEY_MISMATCH",
    ]:
        monkeypatch.delenv(key, raising=False)


# ============================================================================
# PERSISTENCE COLLABORATOR
# ============================================================================

class InMemoryCredentialRepository:
    """Dict-backed repository mirroring create / find_first semantics."""

    def __init__(self):
        self.rows = {}
        self.create_calls = []

    def create(self, record):
        now = datetime.now(timezone.utc)
        row = dict(record, created_at=now, updated_at=now)
        self.rows[row["id"]] = row
        self.create_calls.append(copy.deepcopy(record))
        return {
            key: row[key]
            for key in ("id", "secret_ref", "tenant_id", "provider", "integration_id", "kind", "created_at")
        }

    def find_first(self, filter):
        for row in self.rows.values():
            if row["secret_ref"] != filter["secret_ref"]:
                continue
            if filter.get("tenant_id") and row["tenant_id"] != filter["tenant_id"]:
                continue
            return dict(row)
        return None


@pytest.fixture
def repository():
    return InMemoryCredentialRepository()
