"""
Immutable Nostr event records.

[SignedEvent][discussr.models.event.SignedEvent] is the unit every relay
query, subscription and parser works with. It is a plain frozen dataclass
rather than a live ``nostr_sdk.Event`` so that accumulators can hash,
compare and sort events without crossing the FFI boundary; conversion in
both directions is provided by
[from_nostr()][discussr.models.event.SignedEvent.from_nostr] and
[to_nostr()][discussr.models.event.SignedEvent.to_nostr].

[UnsignedEvent][discussr.models.event.UnsignedEvent] is the template the
builders produce and the signer consumes. It never carries ``id``,
``pubkey`` or ``sig``: those only come from the signer.

See Also:
    [discussr.nips.event_builders][]: Produces
        [UnsignedEvent][discussr.models.event.UnsignedEvent] templates.
    [discussr.nips.parsers][]: Turns
        [SignedEvent][discussr.models.event.SignedEvent] into domain objects.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from time import time
from typing import Any

from nostr_sdk import Event as NostrEvent

from ._validation import (
    freeze_tags,
    validate_hex64,
    validate_kind,
    validate_str_no_null,
    validate_timestamp,
)


def _first_value(tags: tuple[tuple[str, ...], ...], name: str) -> str | None:
    for tag in tags:
        if tag[0] == name and len(tag) > 1:
            return tag[1]
    return None


def _all_values(tags: tuple[tuple[str, ...], ...], name: str) -> list[str]:
    return [tag[1] for tag in tags if tag[0] == name and len(tag) > 1]


@dataclass(frozen=True, slots=True)
class SignedEvent:
    """A signed Nostr event as received from a relay or returned by a signer.

    Identity is the ``id`` field: two instances with the same id are the same
    logical event regardless of which relay delivered them.

    Attributes:
        id: Event id, 64 lowercase hex characters.
        pubkey: Author public key, 64 lowercase hex characters.
        created_at: Unix timestamp in seconds.
        kind: Event kind (``0..65535``).
        tags: Ordered tag arrays, each a tuple of strings.
        content: Raw event content.
        sig: Schnorr signature as hex.

    Raises:
        TypeError: If a field has the wrong type.
        ValueError: If ``id``/``pubkey`` are not hex or a tag is malformed.

    Examples:
        ```python
        event = SignedEvent.from_json(raw)
        event.kind               # 1111
        event.tag_value("a")     # '34550:<pubkey>:<d-tag>'
        ```
    """

    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: tuple[tuple[str, ...], ...]
    content: str
    sig: str

    def __post_init__(self) -> None:
        validate_hex64(self.id, "id")
        validate_hex64(self.pubkey, "pubkey")
        validate_timestamp(self.created_at, "created_at")
        validate_kind(self.kind)
        object.__setattr__(self, "tags", freeze_tags(self.tags))
        validate_str_no_null(self.content, "content")
        validate_str_no_null(self.sig, "sig")

    # -- tag helpers ---------------------------------------------------------

    def tag_value(self, name: str) -> str | None:
        """Return the first value of the first tag named *name*, or ``None``."""
        return _first_value(self.tags, name)

    def tag_values(self, name: str) -> list[str]:
        """Return the first value of every tag named *name*, in tag order."""
        return _all_values(self.tags, name)

    def has_tag(self, name: str, value: str) -> bool:
        """Return True if some tag named *name* carries *value* as first value."""
        return value in self.tag_values(name)

    # -- conversions ---------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Return the NIP-01 JSON object for this event."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    def to_json(self) -> str:
        """Serialize to compact NIP-01 JSON."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SignedEvent:
        """Build from a NIP-01 JSON object.

        Raises:
            KeyError: If a required field is missing.
            TypeError: If a field has the wrong type.
            ValueError: If a field fails validation.
        """
        return cls(
            id=data["id"],
            pubkey=data["pubkey"],
            created_at=data["created_at"],
            kind=data["kind"],
            tags=data.get("tags", []),
            content=data.get("content", ""),
            sig=data["sig"],
        )

    @classmethod
    def from_json(cls, raw: str) -> SignedEvent:
        """Parse compact or pretty NIP-01 JSON."""
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise TypeError(f"event JSON must be an object, got {type(data).__name__}")
        return cls.from_dict(data)

    @classmethod
    def from_nostr(cls, event: NostrEvent) -> SignedEvent:
        """Copy the fields out of a ``nostr_sdk.Event``."""
        return cls(
            id=event.id().to_hex(),
            pubkey=event.author().to_hex(),
            created_at=event.created_at().as_secs(),
            kind=event.kind().as_u16(),
            tags=[tuple(tag.as_vec()) for tag in event.tags().to_vec()],
            content=event.content(),
            sig=event.signature(),
        )

    def to_nostr(self) -> NostrEvent:
        """Rebuild the ``nostr_sdk.Event`` for publishing."""
        return NostrEvent.from_json(self.to_json())


@dataclass(frozen=True, slots=True)
class UnsignedEvent:
    """An event template awaiting signature.

    Attributes:
        kind: Event kind.
        content: Event content.
        tags: Ordered tag arrays.
        created_at: Unix timestamp; defaults to the current time.
    """

    kind: int
    content: str = ""
    tags: tuple[tuple[str, ...], ...] = ()
    created_at: int = field(default_factory=lambda: int(time()))

    def __post_init__(self) -> None:
        validate_kind(self.kind)
        validate_str_no_null(self.content, "content")
        validate_timestamp(self.created_at, "created_at")
        object.__setattr__(self, "tags", freeze_tags(self.tags))

    def tag_value(self, name: str) -> str | None:
        """Return the first value of the first tag named *name*, or ``None``."""
        return _first_value(self.tags, name)

    def tag_values(self, name: str) -> list[str]:
        """Return the first value of every tag named *name*, in tag order."""
        return _all_values(self.tags, name)

    def to_dict(self) -> dict[str, Any]:
        """Return the unsigned NIP-01 fields as a JSON object."""
        return {
            "kind": self.kind,
            "created_at": self.created_at,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
        }
