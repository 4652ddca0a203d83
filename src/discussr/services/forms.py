"""
Validation of user-submitted forms.

Each ``validate_*`` function returns a mapping of field name to message,
empty when the input is acceptable, so that a caller can show every problem
at once. [raise_for_errors()][discussr.services.forms.raise_for_errors]
turns a non-empty mapping into a
[ValidationError][discussr.core.exceptions.ValidationError]; the action
layer calls it before building any event.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from discussr.core.exceptions import ValidationError
from discussr.nips.nip19 import is_valid_npub, npub_to_hex


MAX_POST_LENGTH = 280
MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
MIN_D_TAG_LENGTH = 3
MAX_D_TAG_LENGTH = 100

_D_TAG_PATTERN = re.compile(r"^[a-z0-9-]+$")


@dataclass(frozen=True, slots=True)
class DiscussionCreationForm:
    """Input for creating a discussion.

    Attributes:
        title: Display title.
        description: Display description.
        moderators: ``npub`` or hex public keys.
        d_tag: Discussion identifier, unique per author.
    """

    title: str
    description: str
    moderators: tuple[str, ...] = field(default_factory=tuple)
    d_tag: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "moderators", tuple(self.moderators))

    @property
    def moderator_pubkeys(self) -> list[str]:
        """Moderators converted to hex, in input order."""
        return [npub_to_hex(m.strip()) for m in self.moderators if m.strip()]


def validate_discussion_form(title: str | None, description: str | None) -> dict[str, str]:
    """Check the fields shared by discussion requests and edits."""
    errors: dict[str, str] = {}
    if not (title or "").strip():
        errors["title"] = "title is required"
    if not (description or "").strip():
        errors["description"] = "description is required"
    return errors


def validate_post_form(content: str | None, bus_stop_tag: str | None = None) -> dict[str, str]:
    """Check a post: content is required and at most 280 characters.

    The bus-stop tag is optional and free-form.
    """
    errors: dict[str, str] = {}
    if not (content or "").strip():
        errors["content"] = "content is required"
    elif len(content or "") > MAX_POST_LENGTH:
        errors["content"] = f"content must be at most {MAX_POST_LENGTH} characters"
    if bus_stop_tag is not None and not bus_stop_tag.strip():
        errors["bus_stop_tag"] = "bus stop tag must not be blank"
    return errors


def validate_discussion_creation_form(form: DiscussionCreationForm) -> dict[str, str]:
    """Check a discussion creation form.

    Rules:
        * ``title`` required, at most 100 characters.
        * ``description`` required, at most 500 characters.
        * every moderator a valid ``npub`` or hex public key.
        * ``d_tag`` required, 3 to 100 characters of ``[a-z0-9-]`` after trimming.
    """
    errors: dict[str, str] = {}

    if not form.title.strip():
        errors["title"] = "title is required"
    elif len(form.title) > MAX_TITLE_LENGTH:
        errors["title"] = f"title must be at most {MAX_TITLE_LENGTH} characters"

    if not form.description.strip():
        errors["description"] = "description is required"
    elif len(form.description) > MAX_DESCRIPTION_LENGTH:
        errors["description"] = f"description must be at most {MAX_DESCRIPTION_LENGTH} characters"

    invalid = [m for m in form.moderators if not is_valid_npub(m.strip())]
    if invalid:
        errors["moderators"] = f"invalid moderator keys: {', '.join(invalid)}"

    d_tag = (form.d_tag or "").strip()
    if not d_tag:
        errors["d_tag"] = "identifier is required"
    elif not MIN_D_TAG_LENGTH <= len(d_tag) <= MAX_D_TAG_LENGTH:
        errors["d_tag"] = (
            f"identifier must be {MIN_D_TAG_LENGTH} to {MAX_D_TAG_LENGTH} characters"
        )
    elif not _D_TAG_PATTERN.match(d_tag):
        errors["d_tag"] = "identifier may only contain lowercase letters, digits and hyphens"

    return errors


def raise_for_errors(errors: dict[str, str]) -> None:
    """Raise ``ValidationError`` carrying *errors* unless it is empty."""
    if errors:
        raise ValidationError("; ".join(errors.values()), errors)
