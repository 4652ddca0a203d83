"""
Relay subscription filters.

A [Filter][discussr.models.filter.Filter] is the NIP-01 ``REQ`` filter
object: every populated field must match for an event to be selected, and a
list of filters is OR-combined by the relay. Tag constraints are keyed by
their single-letter tag name (``a``, ``A``, ``d``, ``e``, ``k``, ``p``,
``t``) and serialized with the ``#`` prefix.

See Also:
    [discussr.services.pool.RelayPool][]: Sends filters to relays.
    [discussr.services.nostr.NostrService][]: Builds the filters for every
        discussion query.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from nostr_sdk import Filter as NostrFilter

from ._validation import validate_timestamp
from .event import SignedEvent


def _freeze(values: Iterable[Any] | None) -> tuple[Any, ...] | None:
    if values is None:
        return None
    if isinstance(values, (str, bytes)):
        raise TypeError("filter values must be a sequence, not a string")
    return tuple(values)


@dataclass(frozen=True, slots=True)
class Filter:
    """Immutable NIP-01 filter.

    Attributes:
        ids: Event ids to match.
        kinds: Event kinds to match.
        authors: Author public keys to match.
        tags: Tag constraints, tag letter to accepted values.
        since: Lower bound on ``created_at`` (inclusive).
        until: Upper bound on ``created_at`` (inclusive).
        limit: Maximum number of stored events each relay should return.

    Examples:
        ```python
        f = Filter(kinds=[4550], tags={"a": [discussion_id], "e": post_ids})
        f.to_dict()
        # {'kinds': [4550], '#a': [...], '#e': [...]}
        ```
    """

    ids: tuple[str, ...] | None = None
    kinds: tuple[int, ...] | None = None
    authors: tuple[str, ...] | None = None
    tags: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    since: int | None = None
    until: int | None = None
    limit: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "ids", _freeze(self.ids))
        object.__setattr__(self, "kinds", _freeze(self.kinds))
        object.__setattr__(self, "authors", _freeze(self.authors))
        frozen_tags: dict[str, tuple[str, ...]] = {}
        for name, values in self.tags.items():
            letter = name.removeprefix("#")
            if len(letter) != 1:
                raise ValueError(f"tag filter name must be a single letter, got {name!r}")
            frozen_tags[letter] = _freeze(values) or ()
        object.__setattr__(self, "tags", MappingProxyType(frozen_tags))
        for name in ("since", "until", "limit"):
            value = getattr(self, name)
            if value is not None:
                validate_timestamp(value, name)

    def __hash__(self) -> int:
        return hash(json.dumps(self.to_dict(), sort_keys=True))

    def to_dict(self) -> dict[str, Any]:
        """Return the wire representation, omitting unset fields."""
        data: dict[str, Any] = {}
        if self.ids is not None:
            data["ids"] = list(self.ids)
        if self.kinds is not None:
            data["kinds"] = list(self.kinds)
        if self.authors is not None:
            data["authors"] = list(self.authors)
        for name, values in self.tags.items():
            data[f"#{name}"] = list(values)
        if self.since is not None:
            data["since"] = self.since
        if self.until is not None:
            data["until"] = self.until
        if self.limit is not None:
            data["limit"] = self.limit
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    def to_nostr(self) -> NostrFilter:
        """Convert to a ``nostr_sdk.Filter``."""
        return NostrFilter.from_json(self.to_json())

    def matches(self, event: SignedEvent) -> bool:
        """Evaluate this filter locally against *event*.

        ``limit`` is a relay-side cap and is not considered here.
        """
        if self.ids is not None and event.id not in self.ids:
            return False
        if self.kinds is not None and event.kind not in self.kinds:
            return False
        if self.authors is not None and event.pubkey not in self.authors:
            return False
        if self.since is not None and event.created_at < self.since:
            return False
        if self.until is not None and event.created_at > self.until:
            return False
        for name, values in self.tags.items():
            if not any(event.has_tag(name, v) for v in values):
                return False
        return True
