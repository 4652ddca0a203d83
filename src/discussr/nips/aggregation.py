"""Aggregation of parsed events into ranked and joined views.

These functions join posts with evaluations, pick the authoritative version
of replaceable discussions, apply deletions and build audit timelines. Like
the parsers they are pure: inputs are never mutated and running them twice
over the same snapshot yields equal results.
"""

from __future__ import annotations

import random
from collections import defaultdict
from typing import TYPE_CHECKING, Protocol, TypeVar

from discussr.models.constants import AuditItemType, EventKind, Rating
from discussr.models.discussion import (
    AuditTimelineItem,
    Discussion,
    DiscussionPost,
    DiscussionRequest,
    EvaluationStats,
    PostApproval,
    PostEvaluation,
    PostWithStats,
)

from .parsers import parse_discussion_event


if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Sequence

    from discussr.models.event import SignedEvent


T = TypeVar("T")


class _HasEvent(Protocol):
    @property
    def id(self) -> str: ...

    @property
    def event(self) -> SignedEvent: ...


E = TypeVar("E", bound=_HasEvent)


# =============================================================================
# Event lists
# =============================================================================


def dedupe_events(events: Iterable[SignedEvent]) -> list[SignedEvent]:
    """Drop repeated ids, keeping the first occurrence of each."""
    seen: dict[str, SignedEvent] = {}
    for event in events:
        seen.setdefault(event.id, event)
    return list(seen.values())


def sort_events_newest_first(events: Iterable[SignedEvent]) -> list[SignedEvent]:
    """Sort by ``created_at`` descending; ties keep their input order."""
    return sorted(events, key=lambda e: e.created_at, reverse=True)


# =============================================================================
# Evaluations
# =============================================================================


def calculate_evaluation_stats(evaluations: Iterable[PostEvaluation]) -> EvaluationStats:
    """Count positive and negative evaluations."""
    positive = negative = 0
    for evaluation in evaluations:
        if evaluation.rating == Rating.POSITIVE:
            positive += 1
        else:
            negative += 1
    return EvaluationStats(positive=positive, negative=negative)


def combine_posts_with_stats(
    posts: Iterable[DiscussionPost],
    evaluations: Iterable[PostEvaluation],
) -> list[PostWithStats]:
    """Attach to every post the stats of the evaluations targeting it."""
    by_post: dict[str, list[PostEvaluation]] = defaultdict(list)
    for evaluation in evaluations:
        by_post[evaluation.post_id].append(evaluation)
    return [
        PostWithStats(post=post, stats=calculate_evaluation_stats(by_post.get(post.id, ())))
        for post in posts
    ]


def sort_posts_by_score(
    posts: Iterable[PostWithStats],
    *,
    ascending: bool = False,
) -> list[PostWithStats]:
    """Order posts by score.

    Ties are broken by ``created_at`` (newest first) and then by id, so the
    order does not depend on the order in which relays delivered the posts.
    """
    ordered = sorted(posts, key=lambda p: p.id)
    ordered.sort(key=lambda p: p.created_at, reverse=True)
    ordered.sort(key=lambda p: p.score, reverse=not ascending)
    return ordered


def filter_unevaluated_posts(
    posts: Iterable[PostWithStats],
    evaluated_post_ids: Collection[str],
) -> list[PostWithStats]:
    """Keep the posts the current user has not evaluated yet."""
    return [p for p in posts if p.id not in evaluated_post_ids]


def shuffle(items: Sequence[T], rng: random.Random | None = None) -> list[T]:
    """Return a shuffled copy of *items*."""
    result = list(items)
    (rng or random).shuffle(result)
    return result


def top_posts_by_tag(
    posts: Iterable[PostWithStats],
    tags: Iterable[str],
) -> dict[str, PostWithStats | None]:
    """Pick the best approved post for every bus-stop tag.

    Tags with no approved post map to ``None``.
    """
    by_tag: dict[str, list[PostWithStats]] = defaultdict(list)
    for post in posts:
        if post.post.approved and post.post.bus_stop_tag:
            by_tag[post.post.bus_stop_tag].append(post)
    result: dict[str, PostWithStats | None] = {}
    for tag in tags:
        ranked = sort_posts_by_score(by_tag.get(tag, ()))
        result[tag] = ranked[0] if ranked else None
    return result


# =============================================================================
# Discussions
# =============================================================================


def pick_latest_discussion(events: Iterable[SignedEvent]) -> Discussion | None:
    """Return the newest parseable version among *events*.

    Equal timestamps are resolved by the larger event id so the choice is
    stable across relays.
    """
    latest: Discussion | None = None
    for event in events:
        discussion = parse_discussion_event(event)
        if discussion is None:
            continue
        if latest is None or (discussion.created_at, discussion.event.id) > (
            latest.created_at,
            latest.event.id,
        ):
            latest = discussion
    return latest


def latest_discussions(events: Iterable[SignedEvent]) -> list[Discussion]:
    """Reduce replaceable definitions to the newest version per coordinate.

    Returns:
        One discussion per ``(author, d-tag)``, newest first.
    """
    grouped: dict[str, list[SignedEvent]] = defaultdict(list)
    for event in events:
        if event.kind == EventKind.COMMUNITY and event.tag_value("d"):
            grouped[f"{event.pubkey}:{event.tag_value('d')}"].append(event)
    picked = [pick_latest_discussion(group) for group in grouped.values()]
    return sorted((d for d in picked if d is not None), key=lambda d: d.created_at, reverse=True)


def latest_by_d_tag(events: Iterable[SignedEvent]) -> list[SignedEvent]:
    """Keep the newest event per ``(author, d-tag)``, newest first.

    Events without a ``d`` tag are dropped. Unlike
    [latest_discussions()][discussr.nips.aggregation.latest_discussions]
    the events need not parse as discussions.
    """
    latest: dict[tuple[str, str], SignedEvent] = {}
    for event in events:
        d_tag = event.tag_value("d")
        if not d_tag:
            continue
        key = (event.pubkey, d_tag)
        current = latest.get(key)
        if current is None or (event.created_at, event.id) > (current.created_at, current.id):
            latest[key] = event
    return sort_events_newest_first(latest.values())


def approved_discussion_references(list_events: Iterable[SignedEvent]) -> dict[str, SignedEvent]:
    """Map every coordinate quoted by a ``q`` tag to the newest list quoting it."""
    approvals: dict[str, SignedEvent] = {}
    for event in sort_events_newest_first(list_events):
        for ref in event.tag_values("q"):
            if ref:
                approvals.setdefault(ref, event)
    return approvals


# =============================================================================
# Deletions
# =============================================================================


def deleted_references(deletions: Iterable[SignedEvent]) -> set[tuple[str, str]]:
    """Collect ``(author, reference)`` pairs from kind 5 events.

    References are event ids from ``e`` tags and coordinates from ``a`` tags.
    """
    refs: set[tuple[str, str]] = set()
    for deletion in deletions:
        if deletion.kind != EventKind.DELETION:
            continue
        refs.update((deletion.pubkey, ref) for ref in deletion.tag_values("e"))
        refs.update((deletion.pubkey, ref) for ref in deletion.tag_values("a"))
    return refs


def apply_deletions(items: Iterable[E], deletions: Iterable[SignedEvent]) -> list[E]:
    """Drop items whose author issued a deletion referencing them.

    An item is referenced by its event id or by its own ``id`` (the
    coordinate, for discussions). Deletions by anyone else are ignored.
    """
    refs = deleted_references(deletions)
    return [
        item
        for item in items
        if (item.event.pubkey, item.event.id) not in refs
        and (item.event.pubkey, item.id) not in refs
    ]


# =============================================================================
# Audit timeline
# =============================================================================


def create_audit_timeline(
    discussions: Iterable[Discussion] = (),
    requests: Iterable[DiscussionRequest] = (),
    posts: Iterable[DiscussionPost] = (),
    approvals: Iterable[PostApproval] = (),
) -> list[AuditTimelineItem]:
    """Merge every auditable action into one list, newest first."""
    items: list[AuditTimelineItem] = [
        AuditTimelineItem(
            id=r.id,
            type=AuditItemType.DISCUSSION_REQUEST,
            timestamp=r.created_at,
            actor_pubkey=r.requester_pubkey,
            target_id=r.admin_pubkey,
            description=f"Requested discussion '{r.title}'",
            event=r.event,
        )
        for r in requests
    ]
    items.extend(
        AuditTimelineItem(
            id=d.id,
            type=AuditItemType.DISCUSSION_CREATED,
            timestamp=d.created_at,
            actor_pubkey=d.author_pubkey,
            target_id=d.id,
            description=f"Created discussion '{d.title}'",
            event=d.event,
        )
        for d in discussions
    )
    items.extend(
        AuditTimelineItem(
            id=p.id,
            type=AuditItemType.POST_SUBMITTED,
            timestamp=p.created_at,
            actor_pubkey=p.author_pubkey,
            target_id=p.discussion_id,
            description="Submitted a post",
            event=p.event,
        )
        for p in posts
    )
    items.extend(
        AuditTimelineItem(
            id=a.id,
            type=AuditItemType.POST_APPROVED,
            timestamp=a.created_at,
            actor_pubkey=a.moderator_pubkey,
            target_id=a.post_id,
            description="Approved a post",
            event=a.event,
        )
        for a in approvals
    )
    return sorted(items, key=lambda item: item.timestamp, reverse=True)
