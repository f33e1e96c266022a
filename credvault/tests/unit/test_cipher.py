"""
Cipher adapter tests.

CRITICAL: These tests verify:
1. Encryption round-trip works correctly
2. Payloads written under the previous key decrypt during a rotation window
3. Encryption always uses the primary key
4. Tampering is detected
"""

import base64

import pytest
from cryptography.exceptions import InvalidTag

from credvault.config.encryption_keys import KeySettings, KeySource
from credvault.credentials.encryption import (
    CipherAdapter,
    decrypt_token,
    encrypt_token,
    rotate_encryption,
    validate_encryption_ready,
)
from credvault.platform.errors import (
    CipherError,
    DecryptionFailedError,
    ErrorCode,
    KeyConfigurationError,
    MalformedPayloadError,
)

PRIMARY_ONLY = (KeySource.ENCRYPTION_KEY,)
PREVIOUS_ONLY = (KeySource.ENCRYPTION_KEY_PREVIOUS, KeySource.CRYPTO_KEY_PREVIOUS)


@pytest.fixture
def rotation_settings(primary_key, previous_key) -> KeySettings:
    return KeySettings(encryption_key=primary_key, encryption_key_previous=previous_key)


# ============================================================================
# TEST SUITE: ROUND-TRIP
# ============================================================================

class TestRoundTrip:
    """Encrypted values decrypt back to the original."""

    @pytest.mark.parametrize("plaintext", [
        "test_token_value_for_encryption_roundtrip",
        "x",
        "ünïcødé ✓ секрет",
        '{"access_token": "nested"}',
        "a" * 10_000,
    ])
    def test_encrypt_decrypt_roundtrip(self, make_cipher, primary_key, plaintext):
        cipher = make_cipher(KeySettings(encryption_key=primary_key))
        encrypted = cipher.encrypt(plaintext)

        assert cipher.decrypt(encrypted) == plaintext
        if len(plaintext) > 8:
            assert plaintext not in encrypted

    def test_same_plaintext_different_ciphertext(self, make_cipher, primary_key):
        """Random IVs make ciphertext non-deterministic."""
        cipher = make_cipher(KeySettings(encryption_key=primary_key))
        first = cipher.encrypt("same-token-value")
        second = cipher.encrypt("same-token-value")

        assert first != second
        assert cipher.decrypt(first) == "same-token-value"
        assert cipher.decrypt(second) == "same-token-value"

    def test_passphrase_only_configuration(self, make_cipher):
        cipher = make_cipher(KeySettings(crypto_key="a memorable passphrase"))
        assert cipher.decrypt(cipher.encrypt("value")) == "value"

    def test_non_string_rejected(self, make_cipher, primary_key):
        cipher = make_cipher(KeySettings(encryption_key=primary_key))
        with pytest.raises(TypeError):
            cipher.encrypt(b"bytes")
        with pytest.raises(TypeError):
            cipher.decrypt(None)


# ============================================================================
# TEST SUITE: KEY ROTATION
# ============================================================================

class TestRotationWindow:
    """Decrypt-by-trying-every-key keeps old payloads readable."""

    def test_previous_key_payload_decrypts_with_fallback(self, make_cipher, rotation_settings):
        legacy = make_cipher(rotation_settings, PREVIOUS_ONLY).encrypt("legacy-token")

        default = make_cipher(rotation_settings)
        assert default.decrypt(legacy) == "legacy-token"

    def test_primary_only_adapter_cannot_decrypt_previous_payload(
        self, make_cipher, primary_key, previous_key
    ):
        legacy = make_cipher(KeySettings(encryption_key=previous_key)).encrypt("legacy-token")

        primary_only = make_cipher(KeySettings(encryption_key=primary_key))
        with pytest.raises(DecryptionFailedError) as exc_info:
            primary_only.decrypt(legacy)

        assert exc_info.value.code == ErrorCode.DECRYPTION_FAILED.value
        assert isinstance(exc_info.value.__cause__, InvalidTag)

    def test_encrypt_uses_primary_not_previous(self, make_cipher, rotation_settings, previous_key):
        encrypted = make_cipher(rotation_settings).encrypt("new-token")

        assert make_cipher(rotation_settings, PRIMARY_ONLY).decrypt(encrypted) == "new-token"

        previous_only = make_cipher(KeySettings(encryption_key_previous=previous_key), PREVIOUS_ONLY)
        with pytest.raises(DecryptionFailedError):
            previous_only.decrypt(encrypted)

    def test_failure_reports_attempted_sources(self, make_cipher, rotation_settings, make_key):
        foreign = make_cipher(KeySettings(encryption_key=make_key(42))).encrypt("other")
        with pytest.raises(DecryptionFailedError) as exc_info:
            make_cipher(rotation_settings).decrypt(foreign)
        assert exc_info.value.details["attempted_sources"] == [
            "ENCRYPTION_KEY",
            "ENCRYPTION_KEY_PREVIOUS",
        ]

    def test_configuration_read_on_every_call(self, primary_key, previous_key):
        """A corrected configuration takes effect without rebuilding the adapter."""
        current = {"settings": KeySettings(encryption_key=previous_key)}
        cipher = CipherAdapter(settings_provider=lambda: current["settings"])
        legacy = cipher.encrypt("value")

        current["settings"] = KeySettings(encryption_key=primary_key)
        with pytest.raises(DecryptionFailedError):
            cipher.decrypt(legacy)

        current["settings"] = KeySettings(
            encryption_key=primary_key, encryption_key_previous=previous_key
        )
        assert cipher.decrypt(legacy) == "value"


# ============================================================================
# TEST SUITE: TAMPER DETECTION AND MALFORMED INPUT
# ============================================================================

class TestTamperDetection:

    def test_any_flipped_byte_fails(self, make_cipher, primary_key):
        """Flipping any single byte of the frame fails authentication."""
        cipher = make_cipher(KeySettings(encryption_key=primary_key))
        raw = bytearray(base64.b64decode(cipher.encrypt("tamper-me")))

        for index in range(len(raw)):
            tampered = bytearray(raw)
            tampered[index] ^= 0x01
            with pytest.raises(DecryptionFailedError):
                cipher.decrypt(base64.b64encode(bytes(tampered)).decode())

    def test_short_payload_is_malformed(self, make_cipher, primary_key):
        cipher = make_cipher(KeySettings(encryption_key=primary_key))
        with pytest.raises(MalformedPayloadError):
            cipher.decrypt(base64.b64encode(b"short").decode())

    def test_no_key_configured(self, make_cipher):
        cipher = make_cipher(KeySettings())
        with pytest.raises(CipherError) as exc_info:
            cipher.encrypt("value")
        assert exc_info.value.code == ErrorCode.NO_KEY_CONFIGURED.value


# ============================================================================
# TEST SUITE: MODULE HELPERS
# ============================================================================

class TestTokenHelpers:
    """encrypt_token / decrypt_token / rotate_encryption."""

    @pytest.fixture
    def env_keys(self, clean_key_env, monkeypatch, primary_key):
        monkeypatch.setenv("ENCRYPTION_KEY", primary_key)

    @pytest.mark.asyncio
    async def test_env_backed_roundtrip(self, env_keys):
        encrypted = await encrypt_token("env-token")
        assert await decrypt_token(encrypted) == "env-token"

    @pytest.mark.asyncio
    async def test_empty_token_raises_error(self, env_keys):
        with pytest.raises(ValueError, match="Cannot encrypt empty"):
            await encrypt_token("")
        with pytest.raises(ValueError, match="Cannot decrypt empty"):
            await decrypt_token("")

    @pytest.mark.asyncio
    async def test_encrypt_without_key_raises_error(self, clean_key_env):
        with pytest.raises(CipherError):
            await encrypt_token("test-token")

    @pytest.mark.asyncio
    async def test_rotate_moves_payload_to_primary(self, make_cipher, rotation_settings, previous_key):
        legacy = make_cipher(rotation_settings, PREVIOUS_ONLY).encrypt("rotating")
        cipher = make_cipher(rotation_settings)

        rotated = await rotate_encryption(legacy, cipher)

        assert rotated != legacy
        assert make_cipher(rotation_settings, PRIMARY_ONLY).decrypt(rotated) == "rotating"
        with pytest.raises(DecryptionFailedError):
            make_cipher(KeySettings(encryption_key=previous_key)).decrypt(rotated)

    def test_validate_encryption_ready(self, env_keys):
        result = validate_encryption_ready()
        assert result.effective_source == KeySource.ENCRYPTION_KEY

    def test_validate_encryption_ready_raises_when_not_configured(self, clean_key_env):
        with pytest.raises(KeyConfigurationError) as exc_info:
            validate_encryption_ready()
        assert exc_info.value.code == ErrorCode.KEY_MISSING.value
