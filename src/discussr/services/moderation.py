"""
Moderation state machine: pending, approved and revoked posts.

A post's state is never stored. It is derived on every load from the set of
approval events that reference it:

* **pending**: no approval references the post.
* **approved**: at least one approval references it.
* **revoked**: the approval was deleted with a kind 5 event by its author,
  which puts the post back to pending.

[ModerationController][discussr.services.moderation.ModerationController]
holds the latest relay snapshot of one discussion, exposes the pending and
approved views, and performs approve/revoke. Successful actions are applied
optimistically, since relays propagate the new events with a delay; the next
[load()][discussr.services.moderation.ModerationController.load] replaces
that optimistic state wholesale.

Note:
    Only the author of an approval can revoke it. Moderators, including the
    admin, cannot revoke each other's approvals.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from discussr.core.exceptions import DiscussrError, PermissionDeniedError
from discussr.core.logger import Logger
from discussr.nips.aggregation import apply_deletions, sort_events_newest_first
from discussr.nips.event_builders import build_approval_event, build_revocation_event
from discussr.nips.parsers import parse_approval_event, parse_approvals, parse_post_event

from .actions import sign_and_publish
from .permissions import can_approve_post


if TYPE_CHECKING:
    from collections.abc import Iterable

    from discussr.models.discussion import Discussion, DiscussionPost, PostApproval
    from discussr.models.event import SignedEvent
    from discussr.utils.keys import Signer

    from .nostr import NostrService


class LoadSequence:
    """Monotonic counter detecting stale load completions.

    Take a token with [next()][discussr.services.moderation.LoadSequence.next]
    when a load starts; when it completes, apply the result only if
    [is_current()][discussr.services.moderation.LoadSequence.is_current]
    still holds for that token.
    """

    def __init__(self) -> None:
        self._current = 0

    @property
    def current(self) -> int:
        return self._current

    def next(self) -> int:
        self._current += 1
        return self._current

    def is_current(self, token: int) -> bool:
        return token == self._current


class ModerationController:
    """Approve and revoke posts of a single discussion.

    Args:
        service: Used to load events and publish approvals and revocations.
        signer: Signs approvals and revocations; ``None`` for read-only use.
        discussion: The discussion being moderated.
        user_pubkey: Hex pubkey of the current user, ``None`` when logged out.
        admin_pubkey: Instance admin, who moderates every discussion.

    Attributes:
        approving_ids: Post ids with an approval in flight.
        revoking_ids: Post ids with a revocation in flight.
        last_error: The error of the most recent failed action, if any.
        loads: Sequence guard shared by every load of this controller.
    """

    def __init__(
        self,
        service: NostrService,
        signer: Signer | None,
        discussion: Discussion,
        user_pubkey: str | None,
        admin_pubkey: str | None = None,
    ) -> None:
        self._service = service
        self._signer = signer
        self._discussion = discussion
        self._user_pubkey = user_pubkey
        self._admin_pubkey = admin_pubkey
        self._logger = Logger("moderation")

        self._posts: tuple[DiscussionPost, ...] = ()
        self._approvals: tuple[PostApproval, ...] = ()
        self.approving_ids: set[str] = set()
        self.revoking_ids: set[str] = set()
        self.last_error: DiscussrError | None = None
        self.loads = LoadSequence()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def discussion(self) -> Discussion:
        return self._discussion

    @property
    def posts(self) -> tuple[DiscussionPost, ...]:
        """All posts, newest first."""
        return self._posts

    @property
    def approvals(self) -> tuple[PostApproval, ...]:
        return self._approvals

    @property
    def pending_posts(self) -> list[DiscussionPost]:
        return [p for p in self._posts if not p.approved]

    @property
    def approved_posts(self) -> list[DiscussionPost]:
        return [p for p in self._posts if p.approved]

    @property
    def can_moderate(self) -> bool:
        return can_approve_post(self._user_pubkey, self._discussion, self._admin_pubkey)

    def own_approval(self, post: DiscussionPost) -> PostApproval | None:
        """Return the current user's approval of *post*, if any."""
        if not self._user_pubkey:
            return None
        return next(
            (
                a
                for a in self._approvals
                if a.post_id == post.id and a.moderator_pubkey == self._user_pubkey
            ),
            None,
        )

    def load(
        self,
        post_events: Iterable[SignedEvent],
        approval_events: Iterable[SignedEvent],
        deletion_events: Iterable[SignedEvent] = (),
        *,
        token: int | None = None,
    ) -> bool:
        """Replace the state with a fresh relay snapshot.

        Approvals of other discussions are ignored, and approvals deleted by
        their own author are dropped before post states are derived.

        Args:
            post_events: Every known post event of the discussion.
            approval_events: Every known approval event.
            deletion_events: Kind 5 events that may revoke approvals.
            token: Token from ``loads.next()``. A stale token makes the call
                a no-op.

        Returns:
            False if the snapshot was discarded as stale.
        """
        if token is not None and not self.loads.is_current(token):
            self._logger.debug("stale_load_discarded", token=token, current=self.loads.current)
            return False

        approvals = [
            a for a in parse_approvals(approval_events) if a.discussion_id == self._discussion.id
        ]
        approvals = apply_deletions(approvals, deletion_events)
        posts = []
        for event in sort_events_newest_first(post_events):
            post = parse_post_event(event, approvals)
            if post is not None:
                posts.append(post)

        self._approvals = tuple(approvals)
        self._posts = tuple(posts)
        self._logger.debug(
            "moderation_state_loaded",
            posts=len(self._posts),
            approvals=len(self._approvals),
            pending=len(self.pending_posts),
        )
        return True

    reconcile = load

    async def refresh(self) -> bool:
        """Load posts, approvals and their revocations from the relays.

        Returns:
            False if a newer refresh started before this one completed.
        """
        token = self.loads.next()
        post_events = await self._service.get_discussion_posts(self._discussion.id)
        approval_events = await self._service.get_approvals(self._discussion.id)
        deletion_events = await self._service.get_deletions([e.id for e in approval_events])
        return self.load(post_events, approval_events, deletion_events, token=token)

    def _require_signer(self) -> Signer:
        if self._signer is None:
            raise PermissionDeniedError("a signer is required to moderate")
        return self._signer

    def _recompute(self, post: DiscussionPost) -> None:
        updated = parse_post_event(post.event, self._approvals)
        if updated is None:
            return
        self._posts = tuple(updated if p.id == post.id else p for p in self._posts)

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    async def approve_post(self, post: DiscussionPost) -> bool:
        """Approve *post* as the current user.

        Returns:
            True once the approval is published and applied locally. False if
            signing or publishing failed; the error is kept in ``last_error``
            and the state is unchanged.

        Raises:
            PermissionDeniedError: The user is logged out or may not approve
                posts in this discussion.
        """
        if not self._user_pubkey:
            raise PermissionDeniedError("login required to approve posts")
        if not self.can_moderate:
            raise PermissionDeniedError(
                f"{self._user_pubkey} is not a moderator of {self._discussion.id}"
            )

        signer = self._require_signer()
        self.approving_ids.add(post.id)
        try:
            template = build_approval_event(post.event, self._discussion.id)
            event = await sign_and_publish(self._service, signer, template)
        except DiscussrError as e:
            self.last_error = e
            self._logger.error("approve_failed", post_id=post.id, error=str(e))
            return False
        finally:
            self.approving_ids.discard(post.id)

        approval = parse_approval_event(event)
        if approval is not None:
            self._approvals = (*self._approvals, approval)
            self._recompute(post)
        self.last_error = None
        self._logger.info("post_approved", post_id=post.id, approval_id=event.id)
        return True

    async def revoke_approval(self, post: DiscussionPost) -> bool:
        """Delete the current user's approval of *post*.

        A user without an approval on the post gets a no-op: nothing is built,
        signed or published.

        Returns:
            True once the revocation is published and applied locally.
        """
        approval = self.own_approval(post)
        if approval is None:
            self._logger.debug("revoke_skipped_no_own_approval", post_id=post.id)
            return False

        signer = self._require_signer()
        self.revoking_ids.add(post.id)
        try:
            template = build_revocation_event(approval.id, self._discussion.id)
            event = await sign_and_publish(self._service, signer, template)
        except DiscussrError as e:
            self.last_error = e
            self._logger.error("revoke_failed", post_id=post.id, error=str(e))
            return False
        finally:
            self.revoking_ids.discard(post.id)

        self._approvals = tuple(a for a in self._approvals if a.id != approval.id)
        self._recompute(post)
        self.last_error = None
        self._logger.info("approval_revoked", post_id=post.id, revocation_id=event.id)
        return True
