"""Event template builders for discussions, posts and moderation.

Pure functions: each returns an
[UnsignedEvent][discussr.models.event.UnsignedEvent] and performs no I/O.
Input validation happens here, before anything reaches a signer or relay,
and raises [ValidationError][discussr.core.exceptions.ValidationError].

``created_at`` defaults to the current time and may be injected for
deterministic tests.

See Also:
    [discussr.nips.parsers][]: The inverse direction, events to domain objects.
    [Signer][discussr.utils.keys.Signer]: Turns these templates into
        [SignedEvent][discussr.models.event.SignedEvent] instances.
"""

from __future__ import annotations

from time import time
from typing import TYPE_CHECKING

from discussr.core.exceptions import ValidationError
from discussr.models.constants import (
    DELETION_CONTENT,
    DISCUSSION_REQUEST_TAG,
    MODERATOR_MARKER,
    REVOCATION_CONTENT,
    EventKind,
    Rating,
)
from discussr.models.event import UnsignedEvent

from .nip19 import generate_d_tag, parse_coordinate


if TYPE_CHECKING:
    from collections.abc import Sequence

    from discussr.models.event import SignedEvent


def _now(created_at: int | None) -> int:
    return int(time()) if created_at is None else created_at


def _require(value: str | None, field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} must not be empty", {field: "required"})
    return value


# =============================================================================
# Kind 34550 (NIP-72 community definition)
# =============================================================================


def build_discussion_event(
    title: str,
    description: str,
    moderators: Sequence[str] = (),
    d_tag: str | None = None,
    *,
    created_at: int | None = None,
) -> UnsignedEvent:
    """Build a discussion definition.

    Args:
        title: Discussion title, stored in the ``name`` tag.
        description: Stored in the ``description`` tag and as content.
        moderators: Hex pubkeys, each emitted as ``["p", pk, "", "moderator"]``.
        d_tag: Replaceable identifier; a random one is generated when omitted.
        created_at: Override the timestamp.

    Raises:
        ValidationError: If the title is empty.
    """
    _require(title, "title")
    d_tag = d_tag or generate_d_tag()
    tags: list[tuple[str, ...]] = [
        ("d", d_tag),
        ("name", title),
        ("description", description),
    ]
    tags.extend(("p", pk, "", MODERATOR_MARKER) for pk in moderators)
    return UnsignedEvent(
        kind=EventKind.COMMUNITY,
        content=description,
        tags=tuple(tags),
        created_at=_now(created_at),
    )


# =============================================================================
# Kind 1111 (NIP-22 comment scoped to a discussion)
# =============================================================================


def build_post_event(
    content: str,
    discussion_id: str,
    bus_stop_tag: str | None = None,
    *,
    created_at: int | None = None,
) -> UnsignedEvent:
    """Build a post; ``a`` and ``A`` both carry the discussion coordinate."""
    _require(content, "content")
    _require(discussion_id, "discussion_id")
    tags: list[tuple[str, ...]] = [("a", discussion_id), ("A", discussion_id)]
    if bus_stop_tag:
        tags.append(("t", bus_stop_tag))
    return UnsignedEvent(
        kind=EventKind.COMMENT,
        content=content,
        tags=tuple(tags),
        created_at=_now(created_at),
    )


def build_listing_request_event(
    discussion_id: str,
    discussion_naddr: str,
    discussion_list_id: str,
    *,
    created_at: int | None = None,
) -> UnsignedEvent:
    """Build a request to list a user-created discussion in the discussion list.

    The request is a top-level comment in the discussion-list community:
    ``A``/``a`` carry the list coordinate, ``P``/``p`` its owner and
    ``K``/``k`` its kind. The ``q`` tag quotes the discussion to list and the
    content is its ``nostr:`` URI.
    """
    _require(discussion_id, "discussion_id")
    _require(discussion_naddr, "discussion_naddr")
    parts = parse_coordinate(_require(discussion_list_id, "discussion_list_id"))
    if parts is None or parts[0] != EventKind.COMMUNITY:
        raise ValidationError(
            f"invalid discussion list coordinate: {discussion_list_id}",
            {"discussion_list_id": "invalid"},
        )
    _, list_owner, _ = parts
    kind = str(int(EventKind.COMMUNITY))
    return UnsignedEvent(
        kind=EventKind.COMMENT,
        content=f"nostr:{discussion_naddr}",
        tags=(
            ("A", discussion_list_id),
            ("P", list_owner),
            ("K", kind),
            ("a", discussion_list_id),
            ("p", list_owner),
            ("k", kind),
            ("q", discussion_id),
        ),
        created_at=_now(created_at),
    )


# =============================================================================
# Kind 4550 (NIP-72 approval)
# =============================================================================


def build_approval_event(
    post_event: SignedEvent,
    discussion_id: str,
    *,
    created_at: int | None = None,
) -> UnsignedEvent:
    """Build an approval of *post_event*.

    The content is the full JSON of the approved post so that clients can
    render it without fetching the original.
    """
    _require(discussion_id, "discussion_id")
    return UnsignedEvent(
        kind=EventKind.APPROVAL,
        content=post_event.to_json(),
        tags=(
            ("a", discussion_id),
            ("e", post_event.id),
            ("p", post_event.pubkey),
            ("k", str(post_event.kind)),
        ),
        created_at=_now(created_at),
    )


# =============================================================================
# Kind 7 (NIP-25 reaction used as an evaluation)
# =============================================================================


def build_evaluation_event(
    target_event_id: str,
    rating: str,
    discussion_id: str | None = None,
    *,
    created_at: int | None = None,
) -> UnsignedEvent:
    """Build a ``+``/``-`` evaluation of a post.

    Raises:
        ValidationError: If *rating* is neither ``+`` nor ``-``.
    """
    try:
        value = Rating(rating)
    except ValueError:
        raise ValidationError(
            f"rating must be '+' or '-', got {rating!r}", {"rating": "invalid"}
        ) from None
    _require(target_event_id, "target_event_id")
    tags: list[tuple[str, ...]] = [("e", target_event_id), ("rating", value.value)]
    if discussion_id:
        tags.append(("a", discussion_id))
    return UnsignedEvent(
        kind=EventKind.REACTION,
        content=value.value,
        tags=tuple(tags),
        created_at=_now(created_at),
    )


# =============================================================================
# Kind 1 (discussion request addressed to the admin)
# =============================================================================


def build_discussion_request_event(
    title: str,
    description: str,
    admin_pubkey: str,
    *,
    created_at: int | None = None,
) -> UnsignedEvent:
    """Build a request asking *admin_pubkey* to open a discussion."""
    _require(title, "title")
    _require(admin_pubkey, "admin_pubkey")
    return UnsignedEvent(
        kind=EventKind.TEXT_NOTE,
        content=description,
        tags=(
            ("p", admin_pubkey),
            ("t", DISCUSSION_REQUEST_TAG),
            ("subject", title),
        ),
        created_at=_now(created_at),
    )


# =============================================================================
# Kind 5 (NIP-09 deletion)
# =============================================================================


def build_revocation_event(
    approval_id: str,
    discussion_id: str | None = None,
    *,
    created_at: int | None = None,
) -> UnsignedEvent:
    """Build the deletion of an approval, optionally scoped by an ``h`` tag."""
    _require(approval_id, "approval_id")
    tags: list[tuple[str, ...]] = [("e", approval_id)]
    if discussion_id:
        tags.append(("h", discussion_id))
    return UnsignedEvent(
        kind=EventKind.DELETION,
        content=REVOCATION_CONTENT,
        tags=tuple(tags),
        created_at=_now(created_at),
    )


def build_delete_event(target_event_id: str, *, created_at: int | None = None) -> UnsignedEvent:
    """Build a plain deletion request for *target_event_id*."""
    _require(target_event_id, "target_event_id")
    return UnsignedEvent(
        kind=EventKind.DELETION,
        content=DELETION_CONTENT,
        tags=(("e", target_event_id),),
        created_at=_now(created_at),
    )
