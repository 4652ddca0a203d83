"""
Authorization predicates for discussion actions.

All predicates take the acting user's hex pubkey, or ``None`` for an
anonymous visitor; anonymous users are never authorized. The instance admin
counts as a moderator of every discussion.

Note:
    These checks gate the UI and the action layer only. Relays accept any
    validly signed event, so readers must still filter approvals by
    moderator set when deriving state.
"""

from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Iterable

    from discussr.models.discussion import Discussion


def is_admin(user_pubkey: str | None, admin_pubkey: str | None) -> bool:
    return bool(user_pubkey) and user_pubkey == admin_pubkey


def is_moderator(
    user_pubkey: str | None,
    moderators: Iterable[str],
    admin_pubkey: str | None = None,
) -> bool:
    """Return True if *user_pubkey* is in *moderators* or is the admin."""
    if not user_pubkey:
        return False
    if is_admin(user_pubkey, admin_pubkey):
        return True
    return user_pubkey in set(moderators)


def is_discussion_creator(user_pubkey: str | None, discussion: Discussion) -> bool:
    return bool(user_pubkey) and user_pubkey == discussion.author_pubkey


def can_edit_discussion(
    user_pubkey: str | None, discussion: Discussion, admin_pubkey: str | None
) -> bool:
    return is_admin(user_pubkey, admin_pubkey) or is_discussion_creator(user_pubkey, discussion)


def can_delete_discussion(
    user_pubkey: str | None, discussion: Discussion, admin_pubkey: str | None
) -> bool:
    return is_admin(user_pubkey, admin_pubkey) or is_discussion_creator(user_pubkey, discussion)


def can_approve_post(
    user_pubkey: str | None, discussion: Discussion, admin_pubkey: str | None
) -> bool:
    """Admin, listed moderators and the discussion creator may approve posts."""
    return is_moderator(
        user_pubkey, discussion.moderator_pubkeys, admin_pubkey
    ) or is_discussion_creator(user_pubkey, discussion)


def can_view_audit_with_names(
    user_pubkey: str | None, discussion: Discussion, admin_pubkey: str | None
) -> bool:
    """Only the admin and moderators see author names in the audit timeline."""
    return is_moderator(user_pubkey, discussion.moderator_pubkeys, admin_pubkey)
