"""
Unit tests for utils.keys module.

Tests:
- load_keys_from_env() - environment variable loading with various key formats
- KeysConfig - Pydantic model for Nostr keys configuration
- to_event_builder() / KeysSigner - signing of UnsignedEvent templates
"""

from unittest.mock import patch

import pytest
from nostr_sdk import Keys, NostrSdkError, PublicKey

from discussr.core.exceptions import SigningError
from discussr.models import SignedEvent, UnsignedEvent
from discussr.utils.keys import (
    ENV_PRIVATE_KEY,
    KeysConfig,
    KeysSigner,
    Signer,
    load_keys_from_env,
)


# =============================================================================
# Test Constants
# =============================================================================

# Valid secp256k1 test keys (DO NOT USE IN PRODUCTION)
VALID_HEX_KEY = (
    "67dea2ed018072d675f5415ecfaed7d2597555e202d85b3d65ea4e58d2d92ffa"  # pragma: allowlist secret
)
VALID_NSEC_KEY = (
    "nsec1vl029mgpspedva04g90vltkh6fvh240zqtv9k0t9af8935ke9laqsnlfe5"  # pragma: allowlist secret
)


# =============================================================================
# load_keys_from_env() Tests
# =============================================================================


class TestLoadKeysFromEnv:
    """load_keys_from_env() behavior."""

    def test_constant_value(self):
        assert ENV_PRIVATE_KEY == "NOSTR_PRIVATE_KEY"  # pragma: allowlist secret

    def test_hex_key(self):
        with patch.dict("os.environ", {ENV_PRIVATE_KEY: VALID_HEX_KEY}):
            keys = load_keys_from_env()
        assert isinstance(keys, Keys)

    def test_nsec_and_hex_are_same_key(self):
        with patch.dict("os.environ", {ENV_PRIVATE_KEY: VALID_NSEC_KEY}):
            from_nsec = load_keys_from_env()
        with patch.dict("os.environ", {ENV_PRIVATE_KEY: VALID_HEX_KEY}):
            from_hex = load_keys_from_env()
        assert from_nsec.public_key().to_hex() == from_hex.public_key().to_hex()

    def test_custom_env_var(self):
        with patch.dict("os.environ", {"MODERATOR_KEY": VALID_HEX_KEY}):
            assert isinstance(load_keys_from_env("MODERATOR_KEY"), Keys)

    def test_missing_variable(self):
        with (
            patch.dict("os.environ", {}, clear=True),
            pytest.raises(ValueError, match="NOSTR_PRIVATE_KEY"),
        ):
            load_keys_from_env()

    def test_empty_variable(self):
        with (
            patch.dict("os.environ", {ENV_PRIVATE_KEY: ""}),
            pytest.raises(ValueError, match="required"),
        ):
            load_keys_from_env()


class TestKeysConfig:
    """KeysConfig model."""

    def test_loads_from_env(self):
        with patch.dict("os.environ", {ENV_PRIVATE_KEY: VALID_HEX_KEY}):
            config = KeysConfig()
        assert isinstance(config.keys, Keys)

    def test_explicit_keys_skip_env(self):
        keys = Keys.parse(VALID_HEX_KEY)
        with patch.dict("os.environ", {}, clear=True):
            config = KeysConfig(keys=keys)
        assert config.keys is keys


# =============================================================================
# KeysSigner Tests
# =============================================================================


class TestKeysSigner:
    """Local key signer."""

    @pytest.fixture
    def signer(self) -> KeysSigner:
        return KeysSigner(Keys.parse(VALID_HEX_KEY))

    def test_satisfies_protocol(self, signer: KeysSigner):
        assert isinstance(signer, Signer)

    async def test_public_key(self, signer: KeysSigner):
        expected = Keys.parse(VALID_HEX_KEY).public_key().to_hex()
        assert await signer.get_public_key() == expected

    async def test_sign_preserves_template(self, signer: KeysSigner):
        template = UnsignedEvent(
            kind=1111,
            content="Stop 4 shelter is broken",
            tags=[("t", "harbour")],
            created_at=1700000000,
        )

        event = await signer.sign_event(template)

        assert isinstance(event, SignedEvent)
        assert event.pubkey == signer.public_key
        assert event.kind == 1111
        assert event.created_at == 1700000000
        assert event.content == "Stop 4 shelter is broken"
        assert event.tags == (("t", "harbour"),)
        assert event.to_nostr().verify()

    def test_generate(self):
        a = KeysSigner.generate()
        b = KeysSigner.generate()
        assert a.public_key != b.public_key

    def test_from_env(self):
        with patch.dict("os.environ", {ENV_PRIVATE_KEY: VALID_NSEC_KEY}):
            signer = KeysSigner.from_env()
        assert signer.public_key == Keys.parse(VALID_HEX_KEY).public_key().to_hex()

    async def test_sdk_failure_becomes_signing_error(self, signer: KeysSigner):
        try:
            PublicKey.parse("not-a-key")
        except NostrSdkError as e:
            sdk_error = e

        template = UnsignedEvent(kind=1, created_at=1)
        with (
            patch("discussr.utils.keys.to_event_builder", side_effect=sdk_error),
            pytest.raises(SigningError, match="failed to sign kind 1"),
        ):
            await signer.sign_event(template)
