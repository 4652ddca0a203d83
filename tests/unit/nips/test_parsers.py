"""Unit tests for nips.parsers module.

Parsers return ``None`` for foreign kinds and missing tags and never raise
on malformed relay data.
"""

from __future__ import annotations

import pytest

from discussr.models import (
    Discussion,
    DiscussionListingRequest,
    DiscussionPost,
    DiscussionRequest,
    EventKind,
    PostApproval,
    PostEvaluation,
    Profile,
    Rating,
)
from discussr.nips.parsers import (
    decode_event,
    parse_approval_event,
    parse_approvals,
    parse_discussion_event,
    parse_discussion_request_event,
    parse_evaluation_event,
    parse_evaluations,
    parse_listing_request_event,
    parse_listing_requests,
    parse_post_event,
    parse_posts,
    parse_profile_event,
)
from tests.fixtures.nostr import (
    approval_event,
    evaluation_event,
    hex_key,
    make_event,
    post_event,
)


DISCUSSION = f"34550:{hex_key('admin')}:bus-stops"
LIST_ID = f"34550:{hex_key('admin')}:discussion-list"
TRAMS = f"34550:{hex_key('alice')}:trams"


# ============================================================================
# Discussions
# ============================================================================


class TestParseDiscussionEvent:
    """Kind 34550."""

    def test_full(self, discussion_event) -> None:
        discussion = parse_discussion_event(discussion_event)

        assert discussion is not None
        assert discussion.id == DISCUSSION
        assert discussion.d_tag == "bus-stops"
        assert discussion.title == "Bus stops"
        assert discussion.author_pubkey == hex_key("admin")
        assert discussion.moderator_pubkeys == [hex_key("mod1"), hex_key("mod2")]

    def test_fallbacks(self) -> None:
        event = make_event(kind=EventKind.COMMUNITY, content="Body", tags=[("d", "x1")])
        discussion = parse_discussion_event(event)
        assert discussion is not None
        assert discussion.title == "x1"
        assert discussion.description == "Body"

    def test_unmarked_p_tags_are_not_moderators(self) -> None:
        event = make_event(
            kind=EventKind.COMMUNITY,
            tags=[("d", "x1"), ("p", hex_key("bob")), ("p", hex_key("carol"), "", "member")],
        )
        discussion = parse_discussion_event(event)
        assert discussion is not None
        assert discussion.moderators == ()

    def test_missing_d_tag(self) -> None:
        assert parse_discussion_event(make_event(kind=EventKind.COMMUNITY)) is None

    def test_wrong_kind(self) -> None:
        assert parse_discussion_event(make_event(kind=1, tags=[("d", "x")])) is None


# ============================================================================
# Approvals
# ============================================================================


class TestParseApprovalEvent:
    """Kind 4550."""

    def test_fields(self) -> None:
        post = post_event(DISCUSSION)
        event = approval_event(post, DISCUSSION, moderator="mod1", created_at=77)

        approval = parse_approval_event(event)

        assert approval == PostApproval(
            id=event.id,
            post_id=post.id,
            post_author_pubkey=post.pubkey,
            moderator_pubkey=hex_key("mod1"),
            discussion_id=DISCUSSION,
            created_at=77,
            event=event,
        )

    @pytest.mark.parametrize("missing", ["a", "e", "p"])
    def test_required_tags(self, missing: str) -> None:
        tags = [t for t in [("a", DISCUSSION), ("e", "x"), ("p", "y")] if t[0] != missing]
        assert parse_approval_event(make_event(kind=EventKind.APPROVAL, tags=tags)) is None

    def test_parse_approvals_skips_other_kinds(self) -> None:
        post = post_event(DISCUSSION)
        events = [post, approval_event(post, DISCUSSION)]
        assert [a.post_id for a in parse_approvals(events)] == [post.id]


# ============================================================================
# Posts
# ============================================================================


class TestParsePostEvent:
    """Kind 1111 with derived approval state."""

    def test_pending(self) -> None:
        event = post_event(DISCUSSION, "Shelter broken", bus_stop="harbour")

        post = parse_post_event(event)

        assert post is not None
        assert post.content == "Shelter broken"
        assert post.discussion_id == DISCUSSION
        assert post.bus_stop_tag == "harbour"
        assert not post.approved
        assert post.approved_by == ()
        assert post.approved_at is None

    def test_approved_by_distinct_in_first_seen_order(self) -> None:
        event = post_event(DISCUSSION)
        approvals = parse_approvals(
            [
                approval_event(event, DISCUSSION, moderator="mod2", created_at=300),
                approval_event(event, DISCUSSION, moderator="mod1", created_at=200),
                approval_event(event, DISCUSSION, moderator="mod2", created_at=400),
            ]
        )

        post = parse_post_event(event, approvals)

        assert post is not None
        assert post.approved
        assert post.approved_by == (hex_key("mod2"), hex_key("mod1"))
        assert post.approved_at == 200

    def test_approvals_of_other_posts_ignored(self) -> None:
        event = post_event(DISCUSSION, "one")
        other = post_event(DISCUSSION, "two")
        approvals = parse_approvals([approval_event(other, DISCUSSION)])

        post = parse_post_event(event, approvals)

        assert post is not None
        assert not post.approved

    def test_uppercase_a_tag_accepted(self) -> None:
        event = make_event(kind=EventKind.COMMENT, tags=[("A", DISCUSSION)])
        post = parse_post_event(event)
        assert post is not None
        assert post.discussion_id == DISCUSSION

    def test_legacy_text_note(self) -> None:
        event = make_event(kind=EventKind.TEXT_NOTE, tags=[("a", DISCUSSION)])
        assert parse_post_event(event) is not None

    def test_no_discussion_reference(self) -> None:
        assert parse_post_event(make_event(kind=EventKind.COMMENT)) is None

    def test_parse_posts_shares_approvals(self) -> None:
        a = post_event(DISCUSSION, "a")
        b = post_event(DISCUSSION, "b")
        approvals = (x for x in parse_approvals([approval_event(b, DISCUSSION)]))

        posts = parse_posts([a, b], approvals)

        assert [p.approved for p in posts] == [False, True]


# ============================================================================
# Evaluations
# ============================================================================


class TestParseEvaluationEvent:
    """Kind 7."""

    def test_rating_tag(self) -> None:
        post = post_event(DISCUSSION)
        event = evaluation_event(post, "-", discussion=DISCUSSION)

        evaluation = parse_evaluation_event(event)

        assert isinstance(evaluation, PostEvaluation)
        assert evaluation.rating is Rating.NEGATIVE
        assert evaluation.post_id == post.id
        assert evaluation.discussion_id == DISCUSSION

    @pytest.mark.parametrize(
        ("content", "expected"),
        [("+", Rating.POSITIVE), ("-", Rating.NEGATIVE), ("❤", Rating.POSITIVE)],
    )
    def test_content_fallback(self, content: str, expected: Rating) -> None:
        event = make_event(kind=EventKind.REACTION, content=content, tags=[("e", "x")])
        evaluation = parse_evaluation_event(event)
        assert evaluation is not None
        assert evaluation.rating is expected

    def test_empty_content_without_tag(self) -> None:
        event = make_event(kind=EventKind.REACTION, content=" ", tags=[("e", "x")])
        assert parse_evaluation_event(event) is None

    def test_missing_target(self) -> None:
        assert parse_evaluation_event(make_event(kind=EventKind.REACTION, content="+")) is None

    def test_parse_evaluations(self) -> None:
        post = post_event(DISCUSSION)
        events = [evaluation_event(post, "+"), post]
        assert len(parse_evaluations(events)) == 1


# ============================================================================
# Requests and profiles
# ============================================================================


class TestParseDiscussionRequestEvent:
    """Kind 1 tagged discussion-request."""

    def test_fields(self) -> None:
        event = make_event(
            kind=EventKind.TEXT_NOTE,
            content="Please open",
            tags=[("p", hex_key("admin")), ("t", "discussion-request"), ("subject", "Trams")],
            author="carol",
        )
        request = parse_discussion_request_event(event)
        assert request is not None
        assert request.title == "Trams"
        assert request.requester_pubkey == hex_key("carol")
        assert request.admin_pubkey == hex_key("admin")

    def test_untagged_note(self) -> None:
        event = make_event(kind=EventKind.TEXT_NOTE, tags=[("p", hex_key("admin"))])
        assert parse_discussion_request_event(event) is None


class TestParseProfileEvent:
    """Kind 0."""

    def test_fields(self) -> None:
        event = make_event(
            kind=EventKind.PROFILE,
            content='{"name": "bob", "display_name": "Bob", "picture": "", "about": 5}',
        )
        profile = parse_profile_event(event)
        assert profile == Profile(pubkey=event.pubkey, name="bob", display_name="Bob")

    @pytest.mark.parametrize("content", ["not json", "[1, 2]"])
    def test_unreadable_content(self, content: str) -> None:
        event = make_event(kind=EventKind.PROFILE, content=content)
        assert parse_profile_event(event) == Profile(pubkey=event.pubkey)


class TestParseListingRequestEvent:
    """Discussion listing requests."""

    def test_valid(self) -> None:
        event = make_event(
            kind=EventKind.COMMENT,
            content="nostr:naddr1trams",
            tags=[("A", LIST_ID), ("a", LIST_ID), ("q", TRAMS)],
            created_at=7,
        )

        assert parse_listing_request_event(event) == DiscussionListingRequest(
            id=event.id,
            discussion_id=TRAMS,
            discussion_list_id=LIST_ID,
            requester_pubkey=hex_key("alice"),
            created_at=7,
            event=event,
        )

    @pytest.mark.parametrize(
        ("kind", "tags"),
        [
            (EventKind.TEXT_NOTE, [("A", LIST_ID), ("q", TRAMS)]),
            (EventKind.COMMENT, [("A", LIST_ID)]),
            (EventKind.COMMENT, [("q", TRAMS)]),
            (EventKind.COMMENT, [("A", LIST_ID), ("q", f"30023:{hex_key('alice')}:x")]),
            (EventKind.COMMENT, [("A", LIST_ID), ("q", "trams")]),
        ],
    )
    def test_rejected(self, kind: int, tags: list[tuple[str, ...]]) -> None:
        assert parse_listing_request_event(make_event(kind=kind, tags=tags)) is None

    def test_batch_skips_plain_posts(self) -> None:
        request = make_event(tags=[("A", LIST_ID), ("q", TRAMS)])
        parsed = parse_listing_requests([post_event(DISCUSSION), request])
        assert [r.id for r in parsed] == [request.id]


# ============================================================================
# decode_event
# ============================================================================


class TestDecodeEvent:
    """Dispatch on kind."""

    def test_dispatch(self, discussion_event) -> None:
        post = post_event(DISCUSSION)
        request = make_event(
            kind=EventKind.TEXT_NOTE,
            tags=[("p", hex_key("admin")), ("t", "discussion-request")],
        )

        assert isinstance(decode_event(discussion_event), Discussion)
        assert isinstance(decode_event(post), DiscussionPost)
        assert isinstance(decode_event(approval_event(post, DISCUSSION)), PostApproval)
        assert isinstance(decode_event(evaluation_event(post, "+")), PostEvaluation)
        assert isinstance(decode_event(request), DiscussionRequest)
        assert isinstance(decode_event(make_event(kind=0, content="{}")), Profile)

    def test_legacy_note_decodes_as_post(self) -> None:
        note = make_event(kind=EventKind.TEXT_NOTE, tags=[("a", DISCUSSION)])
        assert isinstance(decode_event(note), DiscussionPost)

    def test_unknown_kind(self) -> None:
        assert decode_event(make_event(kind=30023)) is None
