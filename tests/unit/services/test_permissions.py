"""Unit tests for services.permissions module."""

from __future__ import annotations

import pytest

from discussr.models import Discussion
from discussr.nips.parsers import parse_discussion_event
from discussr.services.permissions import (
    can_approve_post,
    can_delete_discussion,
    can_edit_discussion,
    can_view_audit_with_names,
    is_admin,
    is_discussion_creator,
    is_moderator,
)
from tests.fixtures.nostr import hex_key, make_event


ADMIN = hex_key("root")
CREATOR = hex_key("creator")
MOD = hex_key("mod1")
VISITOR = hex_key("bob")


@pytest.fixture
def discussion() -> Discussion:
    event = make_event(
        kind=34550,
        tags=[("d", "bus"), ("p", MOD, "", "moderator")],
        author="creator",
    )
    parsed = parse_discussion_event(event)
    assert parsed is not None
    return parsed


class TestIdentity:
    """Role predicates."""

    def test_is_admin(self):
        assert is_admin(ADMIN, ADMIN)
        assert not is_admin(VISITOR, ADMIN)
        assert not is_admin(None, None)
        assert not is_admin("", "")

    def test_is_moderator(self):
        assert is_moderator(MOD, [MOD])
        assert is_moderator(ADMIN, [MOD], ADMIN)
        assert not is_moderator(VISITOR, [MOD], ADMIN)
        assert not is_moderator(None, [MOD])

    def test_is_discussion_creator(self, discussion: Discussion):
        assert is_discussion_creator(CREATOR, discussion)
        assert not is_discussion_creator(MOD, discussion)
        assert not is_discussion_creator(None, discussion)


@pytest.mark.parametrize(
    ("user", "approve", "edit", "audit"),
    [
        (ADMIN, True, True, True),
        (CREATOR, True, True, False),
        (MOD, True, False, True),
        (VISITOR, False, False, False),
        (None, False, False, False),
    ],
    ids=["admin", "creator", "moderator", "visitor", "anonymous"],
)
def test_capabilities(
    discussion: Discussion, user: str | None, approve: bool, edit: bool, audit: bool
):
    assert can_approve_post(user, discussion, ADMIN) is approve
    assert can_edit_discussion(user, discussion, ADMIN) is edit
    assert can_delete_discussion(user, discussion, ADMIN) is edit
    assert can_view_audit_with_names(user, discussion, ADMIN) is audit
