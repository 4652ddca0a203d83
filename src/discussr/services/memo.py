"""
Community memo: the best approved post for each bus stop.

[BusStopMemo][discussr.services.memo.BusStopMemo] keeps four independent
streams open for one discussion: the posts tagged with the requested stops,
the approvals of the discussion, the revocations of those approvals (opened
once the approval ids are known) and the evaluations of the posts (opened
once the post ids are known). Each stream only replaces its own cached
snapshot. [update_from_events()][discussr.services.memo.BusStopMemo.update_from_events]
then recomputes the memo from whatever snapshots are cached, so the result is
the same for any interleaving of the streams.

[load_memo()][discussr.services.memo.load_memo] is the one-shot equivalent
used by the CLI.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from discussr.core.logger import Logger
from discussr.nips.aggregation import apply_deletions, combine_posts_with_stats, top_posts_by_tag
from discussr.nips.parsers import parse_approvals, parse_evaluations, parse_posts

from .moderation import LoadSequence


if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from discussr.models.discussion import PostApproval, PostWithStats
    from discussr.models.event import SignedEvent

    from .nostr import NostrService, StreamHandle


def effective_approvals(
    approval_events: Sequence[SignedEvent], deletion_events: Sequence[SignedEvent] = ()
) -> list[PostApproval]:
    """Parse approvals, dropping those revoked by their own moderator."""
    return apply_deletions(parse_approvals(approval_events), deletion_events)


def compute_memo(
    bus_stops: Sequence[str],
    post_events: Sequence[SignedEvent],
    approval_events: Sequence[SignedEvent],
    evaluation_events: Sequence[SignedEvent] = (),
    deletion_events: Sequence[SignedEvent] = (),
) -> dict[str, PostWithStats]:
    """Map each bus stop to its highest scored approved post.

    Stops without an approved post are left out. A post whose only approvals
    were revoked counts as pending.
    """
    approvals = effective_approvals(approval_events, deletion_events)
    posts = [
        p
        for p in parse_posts(post_events, approvals)
        if p.approved and p.bus_stop_tag in bus_stops
    ]
    with_stats = combine_posts_with_stats(posts, parse_evaluations(evaluation_events))
    return {
        tag: top for tag, top in top_posts_by_tag(with_stats, bus_stops).items() if top is not None
    }


class BusStopMemo:
    """Streaming memo of the top approved post per bus stop.

    Args:
        service: Service providing the streams.
        discussion_id: Coordinate of the bus-stop discussion.
        bus_stops: Stop tags to show memos for.
        on_change: Called with the new memo whenever it changes.
    """

    def __init__(
        self,
        service: NostrService,
        discussion_id: str,
        bus_stops: Sequence[str],
        on_change: Callable[[dict[str, PostWithStats]], None] | None = None,
    ) -> None:
        self._service = service
        self._discussion_id = discussion_id
        self._bus_stops = list(dict.fromkeys(bus_stops))
        self._on_change = on_change
        self._logger = Logger("memo")

        self._post_events: list[SignedEvent] = []
        self._approval_events: list[SignedEvent] = []
        self._evaluation_events: list[SignedEvent] = []
        self._deletion_events: list[SignedEvent] = []
        self._handles: list[StreamHandle] = []
        self.loads = LoadSequence()
        self.top_posts: dict[str, PostWithStats] = {}
        self.posts_loaded = False

    @property
    def bus_stops(self) -> list[str]:
        return list(self._bus_stops)

    def update_from_events(self) -> dict[str, PostWithStats]:
        """Recompute the memo from the cached snapshots. Idempotent."""
        memo = compute_memo(
            self._bus_stops,
            self._post_events,
            self._approval_events,
            self._evaluation_events,
            self._deletion_events,
        )
        if memo != self.top_posts:
            self.top_posts = memo
            if self._on_change is not None:
                self._on_change(dict(memo))
        return memo

    def refresh(self) -> None:
        """Restart every stream; callbacks of earlier streams are discarded.

        Must be called from within a running event loop.
        """
        self.close()
        token = self.loads.next()
        self._post_events = []
        self._approval_events = []
        self._evaluation_events = []
        self._deletion_events = []
        self.posts_loaded = False
        self.update_from_events()
        if not self._bus_stops:
            return

        def current() -> bool:
            return self.loads.is_current(token)

        def on_posts(events: list[SignedEvent], _new: SignedEvent | None = None) -> None:
            if not current():
                return
            self._post_events = events
            self.update_from_events()

        def on_posts_eose(events: list[SignedEvent]) -> None:
            if not current():
                return
            on_posts(events)
            self.posts_loaded = True
            self._handles.append(
                self._service.stream_evaluations_for_posts(
                    [e.id for e in events],
                    on_evaluations,
                    on_evaluations,
                    discussion_id=self._discussion_id,
                )
            )

        def on_approvals(events: list[SignedEvent], _new: SignedEvent | None = None) -> None:
            if not current():
                return
            self._approval_events = events
            self.update_from_events()

        def on_approvals_eose(events: list[SignedEvent]) -> None:
            if not current():
                return
            on_approvals(events)
            self._handles.append(
                self._service.stream_deletions([e.id for e in events], on_deletions, on_deletions)
            )

        def on_deletions(events: list[SignedEvent], _new: SignedEvent | None = None) -> None:
            if not current():
                return
            self._deletion_events = events
            self.update_from_events()

        def on_evaluations(events: list[SignedEvent], _new: SignedEvent | None = None) -> None:
            if not current():
                return
            self._evaluation_events = events
            self.update_from_events()

        self._handles.append(
            self._service.stream_discussion_posts(
                self._discussion_id, on_posts, on_posts_eose, bus_stop_tags=self._bus_stops
            )
        )
        self._handles.append(
            self._service.stream_approvals(self._discussion_id, on_approvals, on_approvals_eose)
        )
        self._logger.debug("memo_refresh_started", token=token, stops=len(self._bus_stops))

    def close(self) -> None:
        """Cancel every open stream."""
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()


async def load_memo(
    service: NostrService,
    discussion_id: str,
    bus_stops: Sequence[str],
) -> dict[str, PostWithStats]:
    """One-shot memo: posts, approvals of those posts and their revocations, then evaluations."""
    if not bus_stops:
        return {}
    post_events = await service.get_discussion_posts(discussion_id, bus_stops)
    approval_events = await service.get_approvals_for_posts(
        [e.id for e in post_events], discussion_id
    )
    deletion_events = await service.get_deletions([e.id for e in approval_events])
    approvals = effective_approvals(approval_events, deletion_events)
    approved_ids = [p.id for p in parse_posts(post_events, approvals) if p.approved]
    evaluation_events = await service.get_evaluations_for_posts(approved_ids, discussion_id)
    return compute_memo(
        bus_stops, post_events, approval_events, evaluation_events, deletion_events
    )
