"""Utils layer: relay transport and key management.

Attributes:
    NostrSdkTransport: nostr-sdk backed relay transport.
        See [NostrSdkTransport][discussr.utils.transport.NostrSdkTransport].
    RelayTransport: Protocol the relay pool consumes.
    KeysSigner: Local-key [Signer][discussr.utils.keys.Signer].
    load_keys_from_env: Load ``nostr_sdk.Keys`` from an environment variable.
"""

from .keys import (
    ENV_PRIVATE_KEY,
    KeysConfig,
    KeysSigner,
    Signer,
    load_keys_from_env,
    to_event_builder,
)
from .transport import (
    DEFAULT_TIMEOUT,
    NostrSdkTransport,
    RelayTransport,
    SendResult,
    create_client,
)


__all__ = [
    "DEFAULT_TIMEOUT",
    "ENV_PRIVATE_KEY",
    "KeysConfig",
    "KeysSigner",
    "NostrSdkTransport",
    "RelayTransport",
    "SendResult",
    "Signer",
    "create_client",
    "load_keys_from_env",
    "to_event_builder",
]
