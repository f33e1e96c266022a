"""
Encryption key configuration resolution and validation.

Resolves the four key sources into 32-byte candidates and cross-checks the
two naming conventions for the same logical key. Validation runs eagerly at
startup so that an API and a worker configured through different variable
names cannot silently diverge.

Validation order:
1. No primary source at all            -> CRYPTO_KEY_MISSING
2. ENCRYPTION_KEY set but malformed    -> ENCRYPTION_KEY_INVALID
3. ENCRYPTION_KEY_PREVIOUS malformed   -> ENCRYPTION_KEY_PREVIOUS_INVALID
4. Primary pair disagrees              -> CRYPTO_KEY_MISMATCH
5. Previous pair disagrees             -> CRYPTO_KEY_PREVIOUS_MISMATCH

A mismatch is downgraded to a warning when ALLOW_CRYPTO_KEY_MISMATCH=true.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from credvault.config.encryption_keys import (
    KeySettings,
    KeySource,
    SettingsProvider,
    get_key_settings,
)
from credvault.platform.errors import ErrorCode, KeyConfigurationError
from credvault.utils.encryption import (
    derive_key_from_passphrase,
    keys_equal,
    looks_configured,
    parse_fixed_key,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyCandidate:
    """One usable 32-byte key and the source it came from."""
    source: KeySource
    key: bytes = field(repr=False)


@dataclass
class KeyConfiguration:
    """All currently valid candidates plus presence flags."""
    candidates: List[KeyCandidate]
    has_encryption_key: bool
    has_crypto_key: bool
    has_encryption_key_previous: bool
    has_crypto_key_previous: bool
    allow_mismatch: bool


@dataclass
class KeyValidationResult:
    """Outcome of a successful validation."""
    effective_source: KeySource
    fallback_key_count: int
    warnings: List[str] = field(default_factory=list)


def resolve_source_key(source: KeySource, settings: KeySettings) -> Optional[bytes]:
    """Resolve one source to key bytes, or None if absent or unparseable."""
    raw = settings.raw(source)
    if source.is_passphrase:
        return derive_key_from_passphrase(raw)
    return parse_fixed_key(raw)


def build_candidates(
    preferred_order: Iterable[KeySource] = (),
    settings: Optional[KeySettings] = None,
) -> List[KeyCandidate]:
    """
    Resolve all sources into an ordered, de-duplicated candidate list.

    Preferred sources come first, then the remaining sources in declaration
    order. Byte-identical keys are kept once, under the earliest label.
    """
    settings = settings or get_key_settings()
    resolved = {source: resolve_source_key(source, settings) for source in KeySource}

    ordered: List[KeySource] = []
    for source in list(preferred_order) + list(KeySource):
        source = KeySource(source)
        if source not in ordered:
            ordered.append(source)

    candidates: List[KeyCandidate] = []
    for source in ordered:
        key = resolved[source]
        if key is None:
            continue
        if any(keys_equal(key, existing.key) for existing in candidates):
            continue
        candidates.append(KeyCandidate(source=source, key=key))
    return candidates


def resolve_key_configuration(
    settings: Optional[KeySettings] = None,
    preferred_order: Iterable[KeySource] = (),
) -> KeyConfiguration:
    """Build a KeyConfiguration snapshot without validating it."""
    settings = settings or get_key_settings()
    return KeyConfiguration(
        candidates=build_candidates(preferred_order, settings),
        has_encryption_key=looks_configured(settings.encryption_key),
        has_crypto_key=looks_configured(settings.crypto_key),
        has_encryption_key_previous=looks_configured(settings.encryption_key_previous),
        has_crypto_key_previous=looks_configured(settings.crypto_key_previous),
        allow_mismatch=settings.allow_mismatch,
    )


def _pair_matches(fixed_raw: Optional[str], passphrase_raw: Optional[str]) -> bool:
    """
    Check whether a fixed key and a passphrase source name the same key.

    The passphrase source matches if it is itself the same fixed-format key,
    or if its SHA-256 derivation equals the fixed key.
    """
    fixed = parse_fixed_key(fixed_raw)
    return (
        keys_equal(fixed, parse_fixed_key(passphrase_raw))
        or keys_equal(fixed, derive_key_from_passphrase(passphrase_raw))
    )


def _check_pair(
    fixed: KeySource,
    passphrase: KeySource,
    code: ErrorCode,
    settings: KeySettings,
    warnings: List[str],
) -> None:
    fixed_raw = settings.raw(fixed)
    passphrase_raw = settings.raw(passphrase)
    if not (looks_configured(fixed_raw) and looks_configured(passphrase_raw)):
        return
    if _pair_matches(fixed_raw, passphrase_raw):
        return

    message = f"{fixed.value} and {passphrase.value} resolve to different keys"
    if not settings.allow_mismatch:
        logger.error(
            "Encryption key mismatch",
            extra={"error_code": code.value, "sources": [fixed.value, passphrase.value]},
        )
        raise KeyConfigurationError(
            code,
            message,
            details={"sources": [fixed.value, passphrase.value]},
        )

    logger.warning(
        "Encryption key mismatch allowed by override",
        extra={"error_code": code.value, "sources": [fixed.value, passphrase.value]},
    )
    warnings.append(code.value)


def assert_key_configuration(
    settings_provider: Optional[SettingsProvider] = None,
) -> KeyValidationResult:
    """
    Validate the current key configuration.

    Args:
        settings_provider: Callable returning KeySettings (defaults to the
            process environment, read fresh on every call)

    Returns:
        KeyValidationResult with the effective source and fallback count

    Raises:
        KeyConfigurationError: With one of the key configuration codes
    """
    settings = (settings_provider or get_key_settings)()

    has_fixed = looks_configured(settings.encryption_key)
    has_passphrase = looks_configured(settings.crypto_key)

    if not has_fixed and not has_passphrase:
        raise KeyConfigurationError(
            ErrorCode.KEY_MISSING,
            "Missing encryption key (set ENCRYPTION_KEY or CRYPTO_KEY)",
        )

    if has_fixed and parse_fixed_key(settings.encryption_key) is None:
        raise KeyConfigurationError(
            ErrorCode.PRIMARY_KEY_INVALID,
            "ENCRYPTION_KEY must be 64 hex characters or base64 of 32 bytes",
            details={"source": KeySource.ENCRYPTION_KEY.value},
        )

    if (
        looks_configured(settings.encryption_key_previous)
        and parse_fixed_key(settings.encryption_key_previous) is None
    ):
        raise KeyConfigurationError(
            ErrorCode.PREVIOUS_KEY_INVALID,
            "ENCRYPTION_KEY_PREVIOUS must be 64 hex characters or base64 of 32 bytes",
            details={"source": KeySource.ENCRYPTION_KEY_PREVIOUS.value},
        )

    warnings: List[str] = []
    _check_pair(
        KeySource.ENCRYPTION_KEY,
        KeySource.CRYPTO_KEY,
        ErrorCode.KEY_MISMATCH,
        settings,
        warnings,
    )
    _check_pair(
        KeySource.ENCRYPTION_KEY_PREVIOUS,
        KeySource.CRYPTO_KEY_PREVIOUS,
        ErrorCode.PREVIOUS_KEY_MISMATCH,
        settings,
        warnings,
    )

    effective = KeySource.ENCRYPTION_KEY if has_fixed else KeySource.CRYPTO_KEY
    candidates = build_candidates([effective], settings)

    return KeyValidationResult(
        effective_source=effective,
        fallback_key_count=max(len(candidates) - 1, 0),
        warnings=warnings,
    )
