"""
Encryption key source configuration.

Four logical key sources are supported so that deployments using either
naming convention (and a previous-key rotation window) resolve to the same
candidate set:

- ENCRYPTION_KEY            primary, fixed format (64 hex chars or base64 of 32 bytes)
- CRYPTO_KEY                primary, passphrase (SHA-256 derived)
- ENCRYPTION_KEY_PREVIOUS   previous rotation window, fixed format
- CRYPTO_KEY_PREVIOUS       previous rotation window, passphrase

Configuration is re-read from the environment on every call to
get_key_settings() so a corrected environment takes effect without a restart.
"""

import enum
import os
from dataclasses import dataclass
from typing import Callable, Mapping, Optional


class KeySource(str, enum.Enum):
    """Named key configuration sources, in declaration order."""
    ENCRYPTION_KEY = "ENCRYPTION_KEY"
    CRYPTO_KEY = "CRYPTO_KEY"
    ENCRYPTION_KEY_PREVIOUS = "ENCRYPTION_KEY_PREVIOUS"
    CRYPTO_KEY_PREVIOUS = "CRYPTO_KEY_PREVIOUS"

    @property
    def is_passphrase(self) -> bool:
        return self in (KeySource.CRYPTO_KEY, KeySource.CRYPTO_KEY_PREVIOUS)


# Env var that downgrades a key mismatch to a warning
ALLOW_KEY_MISMATCH_ENV = "ALLOW_CRYPTO_KEY_MISMATCH"

# Encrypt with the primary pair first; previous sources only serve decryption
DEFAULT_PREFERRED_ORDER = (KeySource.ENCRYPTION_KEY, KeySource.CRYPTO_KEY)


@dataclass(frozen=True)
class KeySettings:
    """Snapshot of the raw key configuration at one point in time."""
    encryption_key: Optional[str] = None
    crypto_key: Optional[str] = None
    encryption_key_previous: Optional[str] = None
    crypto_key_previous: Optional[str] = None
    allow_mismatch: bool = False

    def raw(self, source: KeySource) -> Optional[str]:
        """Return the raw configured value for a source."""
        return {
            KeySource.ENCRYPTION_KEY: self.encryption_key,
            KeySource.CRYPTO_KEY: self.crypto_key,
            KeySource.ENCRYPTION_KEY_PREVIOUS: self.encryption_key_previous,
            KeySource.CRYPTO_KEY_PREVIOUS: self.crypto_key_previous,
        }[source]


SettingsProvider = Callable[[], KeySettings]


def parse_bool_flag(raw: Optional[str]) -> bool:
    """Only the string "true" (case-insensitive) enables a flag."""
    return str(raw or "").strip().lower() == "true"


def get_key_settings(environ: Optional[Mapping[str, str]] = None) -> KeySettings:
    """
    Read the current key configuration.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        KeySettings snapshot
    """
    env = os.environ if environ is None else environ
    return KeySettings(
        encryption_key=env.get(KeySource.ENCRYPTION_KEY.value),
        crypto_key=env.get(KeySource.CRYPTO_KEY.value),
        encryption_key_previous=env.get(KeySource.ENCRYPTION_KEY_PREVIOUS.value),
        crypto_key_previous=env.get(KeySource.CRYPTO_KEY_PREVIOUS.value),
        allow_mismatch=parse_bool_flag(env.get(ALLOW_KEY_MISMATCH_ENV)),
    )


def static_settings(settings: KeySettings) -> SettingsProvider:
    """Wrap a fixed snapshot as a settings provider (used by tests and tools)."""
    return lambda: settings
