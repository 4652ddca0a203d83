"""Nostr keys and the signer boundary.

The package never handles signatures itself. Everything that publishes goes
through a [Signer][discussr.utils.keys.Signer]: any object with an async
``sign_event`` turning an
[UnsignedEvent][discussr.models.event.UnsignedEvent] into a
[SignedEvent][discussr.models.event.SignedEvent]. Browser passkeys, remote
signers and local keys are all interchangeable behind it.

[KeysSigner][discussr.utils.keys.KeysSigner] is the local implementation
used by the CLI, backed by ``nostr_sdk.Keys`` loaded from an environment
variable.

Warning:
    Private keys must never be stored in configuration files or logged.
    Load them from the environment with
    [load_keys_from_env()][discussr.utils.keys.load_keys_from_env].
"""

from __future__ import annotations

import os
from typing import Any, Protocol, runtime_checkable

from nostr_sdk import EventBuilder, Keys, Kind, NostrSdkError, Tag, Timestamp
from pydantic import BaseModel, Field, model_validator

from discussr.core.exceptions import SigningError
from discussr.models.event import SignedEvent, UnsignedEvent


ENV_PRIVATE_KEY = "NOSTR_PRIVATE_KEY"  # pragma: allowlist secret


@runtime_checkable
class Signer(Protocol):
    """Opaque signing capability.

    Implementations may raise (user cancelled, device unavailable); callers
    treat any exception as a failed action.
    """

    async def get_public_key(self) -> str:
        """Return the hex public key events will be signed with."""
        ...

    async def sign_event(self, template: UnsignedEvent) -> SignedEvent:
        """Sign *template* and return the complete event."""
        ...


def load_keys_from_env(env_var: str = ENV_PRIVATE_KEY) -> Keys:
    """Load Nostr keys from an environment variable.

    Accepts an ``nsec1`` bech32 or 64-character hex secret key.

    Raises:
        ValueError: If the variable is unset or empty.
        nostr_sdk.NostrSdkError: If the key is malformed.
    """
    value = os.getenv(env_var)
    if not value:
        raise ValueError(
            f"{env_var} environment variable is required. Generate one with: openssl rand -hex 32"
        )
    return Keys.parse(value)


class KeysConfig(BaseModel):
    """Pydantic model that loads signing keys from the environment.

    Warning:
        ``keys`` holds a live private key. Do not serialize this model.
    """

    model_config = {"arbitrary_types_allowed": True}

    keys_env: str = Field(
        default=ENV_PRIVATE_KEY,
        min_length=1,
        description="Environment variable name for the private key",
    )
    keys: Keys = Field(description="Keys loaded from keys_env")

    @model_validator(mode="before")
    @classmethod
    def _load_keys_from_env(cls, data: Any) -> Any:
        if isinstance(data, dict) and "keys" not in data:
            data = {**data, "keys": load_keys_from_env(data.get("keys_env", ENV_PRIVATE_KEY))}
        return data


def to_event_builder(template: UnsignedEvent) -> EventBuilder:
    """Convert a template to a ``nostr_sdk.EventBuilder`` preserving its timestamp."""
    return (
        EventBuilder(Kind(int(template.kind)), template.content)
        .tags([Tag.parse(list(tag)) for tag in template.tags])
        .custom_created_at(Timestamp.from_secs(template.created_at))
    )


class KeysSigner:
    """[Signer][discussr.utils.keys.Signer] backed by local ``nostr_sdk.Keys``."""

    def __init__(self, keys: Keys) -> None:
        self._keys = keys

    @classmethod
    def from_env(cls, env_var: str = ENV_PRIVATE_KEY) -> KeysSigner:
        return cls(load_keys_from_env(env_var))

    @classmethod
    def generate(cls) -> KeysSigner:
        """Create a signer with a fresh random key pair."""
        return cls(Keys.generate())

    @property
    def public_key(self) -> str:
        return self._keys.public_key().to_hex()

    async def get_public_key(self) -> str:
        return self.public_key

    async def sign_event(self, template: UnsignedEvent) -> SignedEvent:
        """Sign *template* with the local keys.

        Raises:
            SigningError: If nostr-sdk rejects the template.
        """
        try:
            event = to_event_builder(template).sign_with_keys(self._keys)
        except NostrSdkError as e:
            raise SigningError(f"failed to sign kind {template.kind} event: {e}") from e
        return SignedEvent.from_nostr(event)
