"""
Configuration models for the relay pool and streaming service.

Configuration is injected at construction time: nothing in the package reads
global state. A YAML file such as:

```yaml
relays:
  - url: wss://relay.damus.io
  - url: wss://relay.nostr.band
    write: false
default_timeout: 5.0
admin_pubkey: npub1...
discussion_id: "34550:<hex pubkey>:bus-stops"
discussion_list_id: "34550:<admin hex pubkey>:discussion-list"
```

is loaded with
[NostrServiceConfig.from_yaml()][discussr.core.config.NostrServiceConfig.from_yaml].

See Also:
    [create_nostr_service()][discussr.services.nostr.create_nostr_service]:
        Factory that consumes this configuration.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from nostr_sdk import NostrSdkError, PublicKey
from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from discussr.models.relay import RelayEndpoint, normalize_relay_url

from .exceptions import ConfigurationError
from .metrics import MetricsConfig
from .yaml import load_yaml


DEFAULT_RELAYS: tuple[str, ...] = (
    "wss://relay.damus.io",
    "wss://relay.nostr.band",
    "wss://nos.lol",
)


def _to_hex_pubkey(value: str) -> str:
    try:
        return PublicKey.parse(value).to_hex()
    except NostrSdkError as e:
        raise ValueError(f"invalid public key {value!r}: {e}") from None


class RelayConfig(BaseModel):
    """A relay URL with its read/write roles."""

    url: str = Field(min_length=1, description="ws:// or wss:// relay URL")
    read: bool = Field(default=True, description="Use for queries and subscriptions")
    write: bool = Field(default=True, description="Use for publishing")

    @field_validator("url")
    @classmethod
    def _normalize_url(cls, v: str) -> str:
        return normalize_relay_url(v)

    @model_validator(mode="after")
    def _check_roles(self) -> RelayConfig:
        if not (self.read or self.write):
            raise ValueError(f"relay {self.url} must be readable, writable, or both")
        return self

    def to_endpoint(self) -> RelayEndpoint:
        return RelayEndpoint(url=self.url, read=self.read, write=self.write)


class NostrServiceConfig(BaseModel):
    """Configuration for [NostrService][discussr.services.nostr.NostrService].

    Attributes:
        relays: Relays to read from and publish to. At least one is required.
        default_timeout: Seconds before a subscription that never reports
            EOSE is closed and treated as complete.
        admin_pubkey: Administrator allowed to moderate every discussion and
            receive discussion requests. Accepts npub or hex, stored as hex.
        discussion_id: Discussion coordinate used for bus-stop posts.
        discussion_list_id: Coordinate of the admin-run community where
            users ask for their discussions to be listed.
        metrics: Prometheus endpoint settings.
    """

    relays: list[RelayConfig] = Field(
        default_factory=lambda: [RelayConfig(url=u) for u in DEFAULT_RELAYS],
        min_length=1,
    )
    default_timeout: float = Field(default=5.0, gt=0, le=300, description="EOSE timeout (s)")
    admin_pubkey: str | None = Field(default=None, description="Administrator public key")
    discussion_id: str | None = Field(default=None, description="Bus-stop discussion")
    discussion_list_id: str | None = Field(default=None, description="Discussion list community")
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @field_validator("admin_pubkey")
    @classmethod
    def _normalize_admin(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return _to_hex_pubkey(v.strip())

    @field_validator("discussion_id", "discussion_list_id")
    @classmethod
    def _check_coordinate(cls, v: str | None, info: ValidationInfo) -> str | None:
        if v is None:
            return None
        parts = v.split(":", 2)
        if len(parts) != 3 or not parts[0].isdigit() or not parts[2]:  # noqa: PLR2004
            raise ValueError(f"{info.field_name} must be '<kind>:<pubkey>:<d-tag>', got {v!r}")
        return v

    @property
    def endpoints(self) -> list[RelayEndpoint]:
        return [r.to_endpoint() for r in self.relays]

    @property
    def read_urls(self) -> list[str]:
        return [r.url for r in self.relays if r.read]

    @property
    def write_urls(self) -> list[str]:
        return [r.url for r in self.relays if r.write]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NostrServiceConfig:
        """Validate a configuration mapping.

        Raises:
            ConfigurationError: If the mapping does not validate.
        """
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise ConfigurationError(str(e)) from e

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> NostrServiceConfig:
        """Load and validate a YAML configuration file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigurationError: If the file is not a valid configuration.
        """
        try:
            data = load_yaml(config_path)
        except (TypeError, ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(str(e)) from e
        return cls.from_dict(data)
