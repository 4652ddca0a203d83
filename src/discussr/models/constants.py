"""Shared constants for the models layer.

Defines the Nostr event kinds, rating symbols and tag values that the
builders, parsers and services agree on. Placing them here avoids circular
dependencies between the models and nips layers.

See Also:
    [discussr.nips.event_builders][]: Emits events using
        [EventKind][discussr.models.constants.EventKind].
    [discussr.nips.parsers][]: Dispatches on
        [EventKind][discussr.models.constants.EventKind] when decoding.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum


class EventKind(IntEnum):
    """Nostr event kinds used by the discussion and moderation layer.

    Attributes:
        PROFILE: Kind 0, user metadata (NIP-01).
        TEXT_NOTE: Kind 1, short note. Carries discussion requests when
            tagged with ``t=discussion-request``; also accepted as a legacy
            post kind.
        DELETION: Kind 5, deletion request (NIP-09). Used both for
            deleting discussions and for revoking approvals.
        REACTION: Kind 7, reaction (NIP-25). Used as a post evaluation.
        COMMENT: Kind 1111, comment (NIP-22). A discussion post.
        APPROVAL: Kind 4550, community post approval (NIP-72).
        COMMUNITY: Kind 34550, community definition (NIP-72). A discussion.
    """

    PROFILE = 0
    TEXT_NOTE = 1
    DELETION = 5
    REACTION = 7
    COMMENT = 1111
    APPROVAL = 4550
    COMMUNITY = 34550


class Rating(StrEnum):
    """Evaluation polarity carried by a kind 7 event."""

    POSITIVE = "+"
    NEGATIVE = "-"


class AuditItemType(StrEnum):
    """Entry types rendered in a discussion audit timeline."""

    DISCUSSION_REQUEST = "discussion-request"
    DISCUSSION_CREATED = "discussion-created"
    POST_SUBMITTED = "post-submitted"
    POST_APPROVED = "post-approved"


DISCUSSION_REQUEST_TAG = "discussion-request"
MODERATOR_MARKER = "moderator"
REVOCATION_CONTENT = "Revoked approval"
DELETION_CONTENT = "delete"
