"""Models layer: pure frozen dataclasses with no network I/O.

Sits at the bottom of the diamond DAG; every other layer depends on it and
it depends on nothing inside the package.

Attributes:
    SignedEvent: Signed Nostr event as delivered by a relay.
        See [SignedEvent][discussr.models.event.SignedEvent].
    UnsignedEvent: Event template produced by the builders.
    Filter: NIP-01 subscription filter.
        See [Filter][discussr.models.filter.Filter].
    RelayEndpoint: Relay URL with read/write roles.
    Discussion, DiscussionPost, PostApproval, PostEvaluation: Domain views
        derived from events. See [discussr.models.discussion][].
"""

from .constants import (
    DELETION_CONTENT,
    DISCUSSION_REQUEST_TAG,
    MODERATOR_MARKER,
    REVOCATION_CONTENT,
    AuditItemType,
    EventKind,
    Rating,
)
from .discussion import (
    ApprovedDiscussion,
    AuditTimelineItem,
    Discussion,
    DiscussionInfo,
    DiscussionListingRequest,
    DiscussionPost,
    DiscussionRequest,
    EvaluationStats,
    Moderator,
    PostApproval,
    PostEvaluation,
    PostWithStats,
    Profile,
)
from .event import SignedEvent, UnsignedEvent
from .filter import Filter
from .relay import RelayEndpoint, normalize_relay_url


__all__ = [
    "DELETION_CONTENT",
    "DISCUSSION_REQUEST_TAG",
    "MODERATOR_MARKER",
    "REVOCATION_CONTENT",
    "ApprovedDiscussion",
    "AuditItemType",
    "AuditTimelineItem",
    "Discussion",
    "DiscussionInfo",
    "DiscussionListingRequest",
    "DiscussionPost",
    "DiscussionRequest",
    "EvaluationStats",
    "EventKind",
    "Filter",
    "Moderator",
    "PostApproval",
    "PostEvaluation",
    "PostWithStats",
    "Profile",
    "Rating",
    "RelayEndpoint",
    "SignedEvent",
    "UnsignedEvent",
    "normalize_relay_url",
]
