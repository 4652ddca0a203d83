"""
Domain view models derived from signed events.

Every model here is a pure projection of one or more
[SignedEvent][discussr.models.event.SignedEvent] instances. None of them is
persisted: the approval state of a post, for instance, exists only as the
presence of kind 4550 events and is recomputed whenever those change.

See Also:
    [discussr.nips.parsers][]: Builds these models from events.
    [discussr.nips.aggregation][]: Joins and ranks them.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ._validation import validate_str_not_empty, validate_timestamp
from .constants import AuditItemType, Rating
from .event import SignedEvent


@dataclass(frozen=True, slots=True)
class Moderator:
    """A moderator entry from a discussion definition."""

    pubkey: str
    name: str | None = None


@dataclass(frozen=True, slots=True)
class Discussion:
    """A discussion (kind 34550 community definition).

    Attributes:
        id: Discussion coordinate ``"34550:<author_pubkey>:<d_tag>"``.
        d_tag: Replaceable-event identifier chosen by the author.
        title: Value of the ``name`` tag.
        description: Value of the ``description`` tag, else the content.
        author_pubkey: Creator of the discussion.
        moderators: Moderators declared with ``["p", pk, "", "moderator"]``.
        created_at: Timestamp of this version of the definition.
        event: Source event.

    Note:
        Several versions may exist for the same author and d-tag; the one
        with the greatest ``created_at`` is authoritative. See
        [pick_latest_discussion()][discussr.nips.aggregation.pick_latest_discussion].
    """

    id: str
    d_tag: str
    title: str
    description: str
    author_pubkey: str
    moderators: tuple[Moderator, ...]
    created_at: int
    event: SignedEvent = field(repr=False, compare=False)

    def __post_init__(self) -> None:
        validate_str_not_empty(self.id, "id")
        validate_timestamp(self.created_at, "created_at")
        object.__setattr__(self, "moderators", tuple(self.moderators))

    @property
    def moderator_pubkeys(self) -> list[str]:
        return [m.pubkey for m in self.moderators]


@dataclass(frozen=True, slots=True)
class PostApproval:
    """A moderator's approval (kind 4550) of a post."""

    id: str
    post_id: str
    post_author_pubkey: str
    moderator_pubkey: str
    discussion_id: str
    created_at: int
    event: SignedEvent = field(repr=False, compare=False)


@dataclass(frozen=True, slots=True)
class DiscussionPost:
    """A post (kind 1111) in a discussion with its derived approval state.

    Attributes:
        id: Post event id.
        content: Post text.
        author_pubkey: Post author.
        discussion_id: Coordinate of the discussion the post belongs to.
        bus_stop_tag: Optional ``t`` tag scoping the post to a bus stop.
        created_at: Post timestamp.
        approved: True iff at least one approval references this post.
        approved_by: Distinct moderator pubkeys, in first-seen order.
        approved_at: Earliest approval timestamp, ``None`` while pending.
        event: Source event.
    """

    id: str
    content: str
    author_pubkey: str
    discussion_id: str
    created_at: int
    event: SignedEvent = field(repr=False, compare=False)
    bus_stop_tag: str | None = None
    approved: bool = False
    approved_by: tuple[str, ...] = ()
    approved_at: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "approved_by", tuple(self.approved_by))


@dataclass(frozen=True, slots=True)
class PostEvaluation:
    """A reaction (kind 7) used as a +/- evaluation of a post."""

    id: str
    post_id: str
    evaluator_pubkey: str
    rating: Rating
    created_at: int
    event: SignedEvent = field(repr=False, compare=False)
    discussion_id: str | None = None


@dataclass(frozen=True, slots=True)
class EvaluationStats:
    """Aggregated evaluations of a single post.

    ``score`` is ``(positive - negative) / total`` and ``0.0`` when no
    evaluation exists, so it always lies in ``[-1, 1]``.
    """

    positive: int = 0
    negative: int = 0

    @property
    def total(self) -> int:
        return self.positive + self.negative

    @property
    def score(self) -> float:
        if self.total == 0:
            return 0.0
        return (self.positive - self.negative) / self.total


@dataclass(frozen=True, slots=True)
class PostWithStats:
    """Ephemeral join of a post with its evaluation stats."""

    post: DiscussionPost
    stats: EvaluationStats

    @property
    def id(self) -> str:
        return self.post.id

    @property
    def created_at(self) -> int:
        return self.post.created_at

    @property
    def score(self) -> float:
        return self.stats.score


@dataclass(frozen=True, slots=True)
class DiscussionRequest:
    """A request (kind 1, ``t=discussion-request``) for an admin to open a discussion."""

    id: str
    title: str
    description: str
    requester_pubkey: str
    admin_pubkey: str | None
    created_at: int
    event: SignedEvent = field(repr=False, compare=False)


@dataclass(frozen=True, slots=True)
class DiscussionListingRequest:
    """A user's request (kind 1111 in the discussion list) to list their discussion.

    ``discussion_id`` is the coordinate quoted by the ``q`` tag and
    ``discussion_list_id`` the community the request was posted to.
    """

    id: str
    discussion_id: str
    discussion_list_id: str
    requester_pubkey: str
    created_at: int
    event: SignedEvent = field(repr=False, compare=False)


@dataclass(frozen=True, slots=True)
class ApprovedDiscussion:
    """A user-created discussion joined with the admin list that approves it."""

    discussion: Discussion
    approval_event: SignedEvent = field(repr=False, compare=False)
    approved_at: int = 0

    @property
    def id(self) -> str:
        return self.discussion.id


@dataclass(frozen=True, slots=True)
class Profile:
    """The subset of kind 0 metadata used for display."""

    pubkey: str
    name: str | None = None
    display_name: str | None = None
    about: str | None = None
    picture: str | None = None

    @property
    def label(self) -> str:
        """Best human-readable name, falling back to a shortened pubkey."""
        return self.display_name or self.name or f"{self.pubkey[:8]}..."


@dataclass(frozen=True, slots=True)
class AuditTimelineItem:
    """One entry of a discussion's audit trail."""

    id: str
    type: AuditItemType
    timestamp: int
    actor_pubkey: str
    description: str
    event: SignedEvent = field(repr=False, compare=False)
    target_id: str | None = None


@dataclass(frozen=True, slots=True)
class DiscussionInfo:
    """The coordinate of a discussion decoded from an ``naddr``."""

    pubkey: str
    d_tag: str
    kind: int = 34550
    relays: tuple[str, ...] = ()

    @property
    def discussion_id(self) -> str:
        return f"{self.kind}:{self.pubkey}:{self.d_tag}"
