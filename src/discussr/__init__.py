r"""discussr -- Nostr discussion and moderation event layer.

Builds, streams, deduplicates and aggregates signed Nostr events that
represent discussions, posts, moderator approvals, evaluations and
revocations over a pool of untrusted relays.

Architecture follows a **diamond DAG** dependency structure where imports
flow strictly downward:

```text
              services         Relay pool, streaming, moderation, actions
             /   |   \
          core  nips  utils    Config, logging, metrics / builders, parsers / transport, keys
             \   |   /
              models           Pure frozen dataclasses (zero I/O)
```

Attributes:
    models: Events, filters, relay endpoints and discussion views.
    core: Configuration, exceptions, logging, metrics.
    nips: Event builders, parsers, aggregation and NIP-19 helpers. No I/O.
    utils: nostr-sdk relay transport and signing keys.
    services: RelayPool, NostrService, ModerationController, BusStopMemo,
        DiscussionActions.

Note:
    Top-level imports (``from discussr import NostrService``) use lazy
    loading and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("discussr")

__all__ = [
    "BusStopMemo",
    "Discussion",
    "DiscussionActions",
    "DiscussionPost",
    "Filter",
    "Logger",
    "ModerationController",
    "NostrService",
    "NostrServiceConfig",
    "PostApproval",
    "RelayPool",
    "SignedEvent",
    "UnsignedEvent",
    "create_nostr_service",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "Logger": ("discussr.core", "Logger"),
    "NostrServiceConfig": ("discussr.core", "NostrServiceConfig"),
    "Discussion": ("discussr.models", "Discussion"),
    "DiscussionPost": ("discussr.models", "DiscussionPost"),
    "Filter": ("discussr.models", "Filter"),
    "PostApproval": ("discussr.models", "PostApproval"),
    "SignedEvent": ("discussr.models", "SignedEvent"),
    "UnsignedEvent": ("discussr.models", "UnsignedEvent"),
    "BusStopMemo": ("discussr.services", "BusStopMemo"),
    "DiscussionActions": ("discussr.services", "DiscussionActions"),
    "ModerationController": ("discussr.services", "ModerationController"),
    "NostrService": ("discussr.services", "NostrService"),
    "RelayPool": ("discussr.services", "RelayPool"),
    "create_nostr_service": ("discussr.services", "create_nostr_service"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'discussr' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
