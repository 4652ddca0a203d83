"""Unit tests for services.forms module."""

from __future__ import annotations

import pytest

from discussr.core.exceptions import ValidationError
from discussr.services.forms import (
    MAX_POST_LENGTH,
    DiscussionCreationForm,
    raise_for_errors,
    validate_discussion_creation_form,
    validate_discussion_form,
    validate_post_form,
)


PUBKEY_HEX = "3bf0c63fcb93463407af97a5e5ee64fa883d107ef9e558472c4eb9aaaefa459d"
PUBKEY_NPUB = "npub180cvv07tjdrrgpa0j7j7tmnyl2yr6yr7l8j4s3evf6u64th6gkwsyjh6w6"


def _form(**overrides) -> DiscussionCreationForm:
    values = {
        "title": "Bus stops",
        "description": "Notes about bus stops",
        "moderators": (PUBKEY_NPUB,),
        "d_tag": "bus-stops",
    }
    values.update(overrides)
    return DiscussionCreationForm(**values)


# ============================================================================
# Posts
# ============================================================================


class TestValidatePostForm:
    """Post content rules."""

    def test_valid(self):
        assert validate_post_form("Shelter is broken", "harbour") == {}

    @pytest.mark.parametrize("content", [None, "", "   "])
    def test_content_required(self, content):
        assert validate_post_form(content) == {"content": "content is required"}

    def test_length_boundary(self):
        assert validate_post_form("x" * MAX_POST_LENGTH) == {}
        assert "content" in validate_post_form("x" * (MAX_POST_LENGTH + 1))

    def test_blank_bus_stop(self):
        assert validate_post_form("ok", "  ") == {"bus_stop_tag": "bus stop tag must not be blank"}


class TestValidateDiscussionForm:
    """Title and description."""

    def test_both_missing(self):
        assert set(validate_discussion_form("", None)) == {"title", "description"}

    def test_valid(self):
        assert validate_discussion_form("Trams", "Please") == {}


# ============================================================================
# Discussion creation
# ============================================================================


class TestValidateDiscussionCreationForm:
    """Creation rules."""

    def test_valid(self):
        assert validate_discussion_creation_form(_form()) == {}

    def test_hex_moderator_accepted(self):
        assert validate_discussion_creation_form(_form(moderators=[PUBKEY_HEX])) == {}

    def test_invalid_moderator(self):
        errors = validate_discussion_creation_form(_form(moderators=[PUBKEY_NPUB, "npub1bad"]))
        assert errors == {"moderators": "invalid moderator keys: npub1bad"}

    @pytest.mark.parametrize(
        ("field", "value"),
        [("title", "x" * 101), ("title", " "), ("description", "x" * 501)],
    )
    def test_title_and_description(self, field: str, value: str):
        assert field in validate_discussion_creation_form(_form(**{field: value}))

    @pytest.mark.parametrize(
        ("d_tag", "valid"),
        [
            ("bus", True),
            ("  bus-stops-2  ", True),
            ("x" * 100, True),
            (None, False),
            ("ab", False),
            ("x" * 101, False),
            ("Bus", False),
            ("bus stops", False),
            ("bus_stops", False),
        ],
    )
    def test_d_tag(self, d_tag: str | None, valid: bool):
        errors = validate_discussion_creation_form(_form(d_tag=d_tag))
        assert ("d_tag" not in errors) is valid

    def test_moderator_pubkeys_converted(self):
        form = _form(moderators=[f" {PUBKEY_NPUB} ", PUBKEY_HEX, "  "])
        assert form.moderator_pubkeys == [PUBKEY_HEX, PUBKEY_HEX]


class TestRaiseForErrors:
    """raise_for_errors()."""

    def test_empty_is_noop(self):
        raise_for_errors({})

    def test_raises_with_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            raise_for_errors({"title": "title is required", "d_tag": "identifier is required"})
        assert exc_info.value.errors == {
            "title": "title is required",
            "d_tag": "identifier is required",
        }
        assert "title is required" in str(exc_info.value)
