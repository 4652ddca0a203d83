"""Event parsers: signed events to domain view models.

Every parser accepts any [SignedEvent][discussr.models.event.SignedEvent]
and returns ``None`` when the kind does not match or a required tag is
missing. Parsers never raise on malformed relay data, never mutate their
inputs, and are deterministic.

[decode_event()][discussr.nips.parsers.decode_event] dispatches on kind
and returns whichever domain object the event represents.

See Also:
    [discussr.nips.event_builders][]: Produces the events parsed here.
    [discussr.nips.aggregation][]: Combines parsed objects into views.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from discussr.models.constants import (
    DISCUSSION_REQUEST_TAG,
    MODERATOR_MARKER,
    EventKind,
    Rating,
)
from discussr.models.discussion import (
    Discussion,
    DiscussionListingRequest,
    DiscussionPost,
    DiscussionRequest,
    Moderator,
    PostApproval,
    PostEvaluation,
    Profile,
)

from .nip19 import build_discussion_id, parse_coordinate


if TYPE_CHECKING:
    from collections.abc import Iterable

    from discussr.models.event import SignedEvent


logger = logging.getLogger(__name__)

DomainObject = (
    Discussion | DiscussionPost | PostApproval | PostEvaluation | DiscussionRequest | Profile
)

_POST_KINDS = (EventKind.COMMENT, EventKind.TEXT_NOTE)
_MODERATOR_MARKER_INDEX = 3


def parse_discussion_event(event: SignedEvent) -> Discussion | None:
    """Parse a kind 34550 discussion definition.

    The title falls back to the d-tag and the description to the content.
    """
    if event.kind != EventKind.COMMUNITY:
        return None
    d_tag = event.tag_value("d")
    if not d_tag:
        return None

    moderators = tuple(
        Moderator(pubkey=tag[1])
        for tag in event.tags
        if tag[0] == "p"
        and len(tag) > _MODERATOR_MARKER_INDEX
        and tag[_MODERATOR_MARKER_INDEX] == MODERATOR_MARKER
    )
    return Discussion(
        id=build_discussion_id(event.pubkey, d_tag),
        d_tag=d_tag,
        title=event.tag_value("name") or d_tag,
        description=event.tag_value("description") or event.content,
        author_pubkey=event.pubkey,
        moderators=moderators,
        created_at=event.created_at,
        event=event,
    )


def parse_approval_event(event: SignedEvent) -> PostApproval | None:
    """Parse a kind 4550 approval; ``a``, ``e`` and ``p`` tags are required."""
    if event.kind != EventKind.APPROVAL:
        return None
    discussion_id = event.tag_value("a")
    post_id = event.tag_value("e")
    post_author = event.tag_value("p")
    if not (discussion_id and post_id and post_author):
        return None
    return PostApproval(
        id=event.id,
        post_id=post_id,
        post_author_pubkey=post_author,
        moderator_pubkey=event.pubkey,
        discussion_id=discussion_id,
        created_at=event.created_at,
        event=event,
    )


def parse_post_event(
    event: SignedEvent,
    approvals: Iterable[PostApproval] = (),
) -> DiscussionPost | None:
    """Parse a post and derive its approval state from *approvals*.

    Kind 1111 is the post kind; kind 1 is accepted for older clients. The
    discussion reference is the first ``a`` or ``A`` tag.

    Args:
        event: Candidate post event.
        approvals: Every known approval; only those whose ``post_id`` equals
            the event id are considered.

    Returns:
        The post with ``approved`` set iff a matching approval exists,
        ``approved_by`` holding the distinct approving moderators in
        first-seen order, and ``approved_at`` the earliest approval time.
    """
    if event.kind not in _POST_KINDS:
        return None
    discussion_id = next(
        (tag[1] for tag in event.tags if tag[0] in ("a", "A") and len(tag) > 1 and tag[1]),
        None,
    )
    if discussion_id is None:
        return None

    matching = [a for a in approvals if a.post_id == event.id]
    approved_by = tuple(dict.fromkeys(a.moderator_pubkey for a in matching))
    return DiscussionPost(
        id=event.id,
        content=event.content,
        author_pubkey=event.pubkey,
        discussion_id=discussion_id,
        bus_stop_tag=event.tag_value("t"),
        created_at=event.created_at,
        approved=bool(matching),
        approved_by=approved_by,
        approved_at=min((a.created_at for a in matching), default=None),
        event=event,
    )


def _parse_rating(event: SignedEvent) -> Rating | None:
    tagged = event.tag_value("rating")
    if tagged in (Rating.POSITIVE, Rating.NEGATIVE):
        return Rating(tagged)
    # NIP-25: "-" is a downvote, any other non-empty reaction an upvote
    content = event.content.strip()
    if not content:
        return None
    return Rating.NEGATIVE if content == Rating.NEGATIVE else Rating.POSITIVE


def parse_evaluation_event(event: SignedEvent) -> PostEvaluation | None:
    """Parse a kind 7 evaluation.

    The ``rating`` tag wins when it holds ``+`` or ``-``; otherwise the
    content is read as a NIP-25 reaction.
    """
    if event.kind != EventKind.REACTION:
        return None
    post_id = event.tag_value("e")
    if not post_id:
        return None
    rating = _parse_rating(event)
    if rating is None:
        return None
    return PostEvaluation(
        id=event.id,
        post_id=post_id,
        evaluator_pubkey=event.pubkey,
        rating=rating,
        discussion_id=event.tag_value("a"),
        created_at=event.created_at,
        event=event,
    )


def parse_discussion_request_event(event: SignedEvent) -> DiscussionRequest | None:
    """Parse a kind 1 note tagged ``t=discussion-request`` and addressed with ``p``."""
    if event.kind != EventKind.TEXT_NOTE or not event.has_tag("t", DISCUSSION_REQUEST_TAG):
        return None
    admin = event.tag_value("p")
    if not admin:
        return None
    return DiscussionRequest(
        id=event.id,
        title=event.tag_value("subject") or "",
        description=event.content,
        requester_pubkey=event.pubkey,
        admin_pubkey=admin,
        created_at=event.created_at,
        event=event,
    )


def parse_listing_request_event(event: SignedEvent) -> DiscussionListingRequest | None:
    """Parse a discussion listing request.

    Requires a kind 1111 event whose ``q`` tag quotes a discussion coordinate
    and whose ``A`` tag names the discussion list it was posted to.
    """
    if event.kind != EventKind.COMMENT:
        return None
    quoted = event.tag_value("q")
    list_id = event.tag_value("A")
    if not quoted or not list_id:
        return None
    parts = parse_coordinate(quoted)
    if parts is None or parts[0] != EventKind.COMMUNITY:
        return None
    return DiscussionListingRequest(
        id=event.id,
        discussion_id=quoted,
        discussion_list_id=list_id,
        requester_pubkey=event.pubkey,
        created_at=event.created_at,
        event=event,
    )


def parse_profile_event(event: SignedEvent) -> Profile | None:
    """Parse kind 0 metadata; unreadable content yields a bare profile."""
    if event.kind != EventKind.PROFILE:
        return None
    try:
        data = json.loads(event.content)
    except json.JSONDecodeError:
        logger.debug("profile_content_invalid pubkey=%s", event.pubkey[:16])
        return Profile(pubkey=event.pubkey)
    if not isinstance(data, dict):
        return Profile(pubkey=event.pubkey)

    def _str(key: str) -> str | None:
        value = data.get(key)
        return value if isinstance(value, str) and value else None

    return Profile(
        pubkey=event.pubkey,
        name=_str("name"),
        display_name=_str("display_name"),
        about=_str("about"),
        picture=_str("picture"),
    )


def decode_event(event: SignedEvent) -> DomainObject | None:
    """Decode *event* into the domain object its kind represents.

    Kind 1 notes decode as a discussion request when tagged so, and as a
    legacy post otherwise.
    """
    kind = event.kind
    if kind == EventKind.COMMUNITY:
        return parse_discussion_event(event)
    if kind == EventKind.COMMENT:
        return parse_post_event(event)
    if kind == EventKind.TEXT_NOTE:
        return parse_discussion_request_event(event) or parse_post_event(event)
    if kind == EventKind.APPROVAL:
        return parse_approval_event(event)
    if kind == EventKind.REACTION:
        return parse_evaluation_event(event)
    if kind == EventKind.PROFILE:
        return parse_profile_event(event)
    return None


def parse_approvals(events: Iterable[SignedEvent]) -> list[PostApproval]:
    """Parse every approval in *events*, skipping the rest."""
    return [a for a in map(parse_approval_event, events) if a is not None]


def parse_posts(
    events: Iterable[SignedEvent],
    approvals: Iterable[PostApproval] = (),
) -> list[DiscussionPost]:
    """Parse every post in *events* against a shared approval list."""
    approval_list = list(approvals)
    return [p for p in (parse_post_event(e, approval_list) for e in events) if p is not None]


def parse_evaluations(events: Iterable[SignedEvent]) -> list[PostEvaluation]:
    """Parse every evaluation in *events*, skipping the rest."""
    return [v for v in map(parse_evaluation_event, events) if v is not None]


def parse_listing_requests(events: Iterable[SignedEvent]) -> list[DiscussionListingRequest]:
    """Parse every listing request in *events*, skipping the rest."""
    return [r for r in map(parse_listing_request_event, events) if r is not None]
