"""Configuration module for the credential vault."""

from credvault.config.encryption_keys import (
    ALLOW_KEY_MISMATCH_ENV,
    DEFAULT_PREFERRED_ORDER,
    KeySettings,
    KeySource,
    get_key_settings,
    static_settings,
)

__all__ = [
    "ALLOW_KEY_MISMATCH_ENV",
    "DEFAULT_PREFERRED_ORDER",
    "KeySettings",
    "KeySource",
    "get_key_settings",
    "static_settings",
]
