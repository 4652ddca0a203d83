"""
Streaming retrieval protocol and discussion queries.

[NostrService][discussr.services.nostr.NostrService] sits on top of the
[RelayPool][discussr.services.pool.RelayPool] and gives callers two ways to
read events:

* **one-shot** (``get_events_on_eose``):
  wait for every relay to report EOSE, then return the merged events
  newest first.
* **streaming** (``stream_events_on_event``):
  every new event is delivered immediately together with the sorted,
  deduplicated snapshot accumulated so far, and ``on_eose`` fires exactly
  once when stored events are exhausted or the timeout elapses, whichever
  comes first. The timeout also closes the subscription.

Streaming callbacks always receive a fresh list; the accumulator itself is
never exposed. An async-iterator form,
[iter_events()][discussr.services.nostr.NostrService.iter_events], wraps
the same protocol for ``async for`` consumers.

Examples:
    ```python
    service = create_nostr_service(NostrServiceConfig())
    async with service:
        handle = service.stream_approvals(
            discussion_id,
            on_event=lambda events, new: print(len(events), new.id),
            on_eose=lambda events: print("stored events loaded:", len(events)),
        )
        ...
        handle.cancel()
    ```
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Self

from discussr.core.logger import Logger
from discussr.core.metrics import STREAM_COUNTER
from discussr.models.constants import DISCUSSION_REQUEST_TAG, EventKind
from discussr.models.discussion import ApprovedDiscussion
from discussr.models.filter import Filter
from discussr.nips.aggregation import (
    approved_discussion_references,
    latest_by_d_tag,
    latest_discussions,
    sort_events_newest_first,
)
from discussr.nips.nip19 import parse_coordinate
from discussr.nips.parsers import parse_listing_requests, parse_profile_event

from .pool import RelayPool


if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Sequence
    from types import TracebackType

    from nostr_sdk import Keys

    from discussr.core.config import NostrServiceConfig
    from discussr.models.discussion import Discussion, DiscussionListingRequest, Profile
    from discussr.models.event import SignedEvent
    from discussr.utils.transport import RelayTransport

    from .pool import Subscription


# =============================================================================
# Accumulation
# =============================================================================


class EventAccumulator:
    """Deduplicating event buffer with a newest-first snapshot.

    The first instance of an id wins; later deliveries of the same id are
    ignored even if their content differs.
    """

    def __init__(self) -> None:
        self._events: dict[str, SignedEvent] = {}

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._events

    def add(self, event: SignedEvent) -> bool:
        """Store *event*; return False if its id was already present."""
        if event.id in self._events:
            return False
        self._events[event.id] = event
        return True

    def snapshot(self) -> list[SignedEvent]:
        """Return a new list of all events sorted by ``created_at`` descending."""
        return sort_events_newest_first(self._events.values())


class StreamHandle:
    """Cancel handle returned by every streaming call.

    Calling the handle (or ``cancel()``) closes the subscription and clears
    the EOSE timer. Both are no-ops once the stream has been cancelled.
    """

    def __init__(
        self,
        subscription: Subscription | None = None,
        timer: asyncio.TimerHandle | None = None,
    ) -> None:
        self._subscription = subscription
        self._timer = timer
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _clear_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _close_subscription(self) -> None:
        if self._subscription is not None:
            self._subscription.close()

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._clear_timer()
        self._close_subscription()

    def __call__(self) -> None:
        self.cancel()


@dataclass(frozen=True, slots=True)
class StreamUpdate:
    """A new event and the snapshot that includes it."""

    events: list[SignedEvent]
    new_event: SignedEvent


@dataclass(frozen=True, slots=True)
class StreamEose:
    """Marks the end of stored events (or the timeout)."""

    events: list[SignedEvent]


# =============================================================================
# Service
# =============================================================================


class NostrService:
    """Discussion-aware reader and publisher over a relay pool.

    Args:
        pool: Shared relay pool.
        default_timeout: Seconds before a subscription without EOSE is
            closed and treated as complete.

    See Also:
        [create_nostr_service()][discussr.services.nostr.create_nostr_service]:
            Factory building the pool from configuration.
    """

    def __init__(self, pool: RelayPool, *, default_timeout: float = 5.0) -> None:
        self._pool = pool
        self._default_timeout = default_timeout
        self._logger = Logger("nostr_service")

    @property
    def pool(self) -> RelayPool:
        return self._pool

    @property
    def default_timeout(self) -> float:
        return self._default_timeout

    async def connect(self) -> None:
        await self._pool.connect()

    async def close(self) -> None:
        await self._pool.close()

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Protocol
    # -------------------------------------------------------------------------

    async def get_events_on_eose(self, filters: Sequence[Filter]) -> list[SignedEvent]:
        """Wait for stored events from every relay and return them newest first.

        Events are deduplicated by id (first occurrence wins). Ties in
        ``created_at`` keep the order in which the pool merged them.
        """
        events = await self._pool.query(filters, self._default_timeout)
        return sort_events_newest_first(events)

    def stream_events_on_event(
        self,
        filters: Sequence[Filter],
        on_event: Callable[[list[SignedEvent], SignedEvent], None],
        on_eose: Callable[[list[SignedEvent]], None] | None = None,
        *,
        timeout: float | None = None,
    ) -> StreamHandle:
        """Stream events with incremental delivery.

        Args:
            filters: OR-combined filters.
            on_event: Called with ``(snapshot, new_event)`` for each event
                whose id was not seen before on this stream. Duplicates are
                dropped silently.
            on_eose: Called once with the snapshot when every relay has
                reported EOSE, or when *timeout* elapses first.
            timeout: Seconds to wait for EOSE; defaults to the service timeout.
                Expiry closes the subscription.

        Returns:
            A [StreamHandle][discussr.services.nostr.StreamHandle]; call it
            to stop the stream.

        Note:
            Must be called from within a running event loop.
        """
        effective = self._default_timeout if timeout is None else timeout
        accumulator = EventAccumulator()
        eose_fired = False
        handle = StreamHandle()

        def handle_event(event: SignedEvent) -> None:
            if handle.cancelled:
                return
            if not accumulator.add(event):
                STREAM_COUNTER.labels(name="duplicates").inc()
                return
            on_event(accumulator.snapshot(), event)

        def fire_eose() -> None:
            nonlocal eose_fired
            if eose_fired or handle.cancelled:
                return
            eose_fired = True
            handle._clear_timer()
            STREAM_COUNTER.labels(name="eose").inc()
            if on_eose is not None:
                on_eose(accumulator.snapshot())

        def handle_timeout() -> None:
            if eose_fired or handle.cancelled:
                return
            STREAM_COUNTER.labels(name="timeouts").inc()
            self._logger.debug("stream_eose_timeout", timeout=effective, events=len(accumulator))
            handle._close_subscription()
            fire_eose()

        handle._subscription = self._pool.subscribe(
            filters, handle_event, fire_eose, timeout=effective
        )
        handle._timer = asyncio.get_running_loop().call_later(effective, handle_timeout)
        return handle

    async def iter_events(
        self,
        filters: Sequence[Filter],
        *,
        timeout: float | None = None,
    ) -> AsyncIterator[StreamUpdate | StreamEose]:
        """Async-iterator form of the streaming protocol.

        Yields a [StreamUpdate][discussr.services.nostr.StreamUpdate] per new
        event and finishes after a single
        [StreamEose][discussr.services.nostr.StreamEose]. Leaving the loop
        early cancels the subscription.
        """
        queue: asyncio.Queue[StreamUpdate | StreamEose] = asyncio.Queue()
        handle = self.stream_events_on_event(
            filters,
            lambda events, new: queue.put_nowait(StreamUpdate(events, new)),
            lambda events: queue.put_nowait(StreamEose(events)),
            timeout=timeout,
        )
        try:
            while True:
                item = await queue.get()
                yield item
                if isinstance(item, StreamEose):
                    return
        finally:
            handle.cancel()

    # -------------------------------------------------------------------------
    # Filters
    # -------------------------------------------------------------------------

    @staticmethod
    def discussion_meta_filter(author_pubkey: str, d_tag: str) -> Filter:
        return Filter(
            kinds=[EventKind.COMMUNITY], authors=[author_pubkey], tags={"d": [d_tag]}, limit=1
        )

    @staticmethod
    def approvals_filter(discussion_id: str, post_ids: Sequence[str] | None = None) -> Filter:
        tags: dict[str, Sequence[str]] = {"a": [discussion_id]}
        if post_ids is not None:
            tags["e"] = list(post_ids)
        return Filter(kinds=[EventKind.APPROVAL], tags=tags)

    @staticmethod
    def posts_filters(
        discussion_id: str, bus_stop_tags: Sequence[str] | None = None
    ) -> list[Filter]:
        """One filter per bus-stop tag, or a single filter for the whole discussion."""
        if bus_stop_tags:
            return [
                Filter(kinds=[EventKind.COMMENT], tags={"a": [discussion_id], "t": [tag]})
                for tag in bus_stop_tags
            ]
        return [Filter(kinds=[EventKind.COMMENT], tags={"a": [discussion_id]})]

    @staticmethod
    def evaluations_filter(
        post_ids: Sequence[str] | None = None,
        discussion_id: str | None = None,
        author_pubkey: str | None = None,
    ) -> Filter:
        tags: dict[str, Sequence[str]] = {}
        if post_ids is not None:
            tags["e"] = list(post_ids)
        if discussion_id:
            tags["a"] = [discussion_id]
        authors = [author_pubkey] if author_pubkey else None
        return Filter(kinds=[EventKind.REACTION], authors=authors, tags=tags)

    @staticmethod
    def deletions_filter(event_ids: Sequence[str]) -> Filter:
        return Filter(kinds=[EventKind.DELETION], tags={"e": list(event_ids)})

    @staticmethod
    def listing_requests_filter(
        discussion_list_id: str, limit: int | None = 50, until: int | None = None
    ) -> Filter:
        return Filter(
            kinds=[EventKind.COMMENT], tags={"A": [discussion_list_id]}, limit=limit, until=until
        )

    # -------------------------------------------------------------------------
    # Streaming specializations
    # -------------------------------------------------------------------------

    def stream_discussion_meta(
        self,
        author_pubkey: str,
        d_tag: str,
        on_event: Callable[[list[SignedEvent], SignedEvent], None],
        on_eose: Callable[[list[SignedEvent]], None] | None = None,
        *,
        timeout: float | None = None,
    ) -> StreamHandle:
        """Stream the definition of one discussion.

        Several versions may arrive; reduce them with
        [pick_latest_discussion()][discussr.nips.aggregation.pick_latest_discussion].
        """
        return self.stream_events_on_event(
            [self.discussion_meta_filter(author_pubkey, d_tag)],
            on_event,
            on_eose,
            timeout=timeout,
        )

    def stream_approvals(
        self,
        discussion_id: str,
        on_event: Callable[[list[SignedEvent], SignedEvent], None],
        on_eose: Callable[[list[SignedEvent]], None] | None = None,
        *,
        timeout: float | None = None,
    ) -> StreamHandle:
        """Stream every approval in a discussion."""
        return self.stream_events_on_event(
            [self.approvals_filter(discussion_id)], on_event, on_eose, timeout=timeout
        )

    def stream_approvals_for_posts(
        self,
        post_ids: Sequence[str],
        discussion_id: str,
        on_event: Callable[[list[SignedEvent], SignedEvent], None],
        on_eose: Callable[[list[SignedEvent]], None] | None = None,
        *,
        timeout: float | None = None,
    ) -> StreamHandle:
        """Stream the approvals of specific posts.

        With no post ids, ``on_eose([])`` is called synchronously, nothing is
        sent to any relay, and an inert handle is returned.
        """
        if not post_ids:
            if on_eose is not None:
                on_eose([])
            return StreamHandle()
        return self.stream_events_on_event(
            [self.approvals_filter(discussion_id, post_ids)], on_event, on_eose, timeout=timeout
        )

    def stream_discussion_posts(
        self,
        discussion_id: str,
        on_event: Callable[[list[SignedEvent], SignedEvent], None],
        on_eose: Callable[[list[SignedEvent]], None] | None = None,
        *,
        bus_stop_tags: Sequence[str] | None = None,
        timeout: float | None = None,
    ) -> StreamHandle:
        """Stream the posts of a discussion, optionally restricted to bus stops."""
        return self.stream_events_on_event(
            self.posts_filters(discussion_id, bus_stop_tags), on_event, on_eose, timeout=timeout
        )

    def stream_evaluations_for_posts(
        self,
        post_ids: Sequence[str],
        on_event: Callable[[list[SignedEvent], SignedEvent], None],
        on_eose: Callable[[list[SignedEvent]], None] | None = None,
        *,
        discussion_id: str | None = None,
        timeout: float | None = None,
    ) -> StreamHandle:
        """Stream evaluations of specific posts; empty input short-circuits."""
        if not post_ids:
            if on_eose is not None:
                on_eose([])
            return StreamHandle()
        return self.stream_events_on_event(
            [self.evaluations_filter(post_ids, discussion_id)],
            on_event,
            on_eose,
            timeout=timeout,
        )

    def stream_deletions(
        self,
        event_ids: Sequence[str],
        on_event: Callable[[list[SignedEvent], SignedEvent], None],
        on_eose: Callable[[list[SignedEvent]], None] | None = None,
        *,
        timeout: float | None = None,
    ) -> StreamHandle:
        """Stream kind 5 events referencing *event_ids*; empty input short-circuits."""
        if not event_ids:
            if on_eose is not None:
                on_eose([])
            return StreamHandle()
        return self.stream_events_on_event(
            [self.deletions_filter(event_ids)], on_event, on_eose, timeout=timeout
        )

    # -------------------------------------------------------------------------
    # One-shot queries
    # -------------------------------------------------------------------------

    async def get_profile(self, pubkey: str) -> Profile | None:
        """Return the newest kind 0 profile of *pubkey*, if any."""
        events = await self.get_events_on_eose(
            [Filter(kinds=[EventKind.PROFILE], authors=[pubkey], limit=1)]
        )
        return parse_profile_event(events[0]) if events else None

    async def get_discussions(self, author_pubkey: str) -> list[Discussion]:
        """Return the newest definition of each discussion by *author_pubkey*."""
        events = await self.get_events_on_eose(
            [Filter(kinds=[EventKind.COMMUNITY], authors=[author_pubkey])]
        )
        return latest_discussions(events)

    async def get_discussion_posts(
        self,
        discussion_id: str,
        bus_stop_tags: Sequence[str] | None = None,
    ) -> list[SignedEvent]:
        return await self.get_events_on_eose(self.posts_filters(discussion_id, bus_stop_tags))

    async def get_approvals(self, discussion_id: str) -> list[SignedEvent]:
        return await self.get_events_on_eose([self.approvals_filter(discussion_id)])

    async def get_approvals_for_posts(
        self, post_ids: Sequence[str], discussion_id: str
    ) -> list[SignedEvent]:
        if not post_ids:
            return []
        return await self.get_events_on_eose([self.approvals_filter(discussion_id, post_ids)])

    async def get_evaluations(
        self, pubkey: str, discussion_id: str | None = None
    ) -> list[SignedEvent]:
        """Return every evaluation authored by *pubkey*."""
        return await self.get_events_on_eose(
            [self.evaluations_filter(discussion_id=discussion_id, author_pubkey=pubkey)]
        )

    async def get_evaluations_for_posts(
        self, post_ids: Sequence[str], discussion_id: str | None = None
    ) -> list[SignedEvent]:
        if not post_ids:
            return []
        return await self.get_events_on_eose([self.evaluations_filter(post_ids, discussion_id)])

    async def get_user_evaluations_for_posts(
        self,
        pubkey: str,
        post_ids: Sequence[str],
        discussion_id: str | None = None,
    ) -> list[SignedEvent]:
        if not post_ids:
            return []
        return await self.get_events_on_eose(
            [self.evaluations_filter(post_ids, discussion_id, author_pubkey=pubkey)]
        )

    async def get_discussion_requests(self, admin_pubkey: str) -> list[SignedEvent]:
        """Return the discussion requests addressed to *admin_pubkey*."""
        return await self.get_events_on_eose(
            [
                Filter(
                    kinds=[EventKind.TEXT_NOTE],
                    tags={"p": [admin_pubkey], "t": [DISCUSSION_REQUEST_TAG]},
                )
            ]
        )

    async def get_deletions(self, event_ids: Sequence[str]) -> list[SignedEvent]:
        """Return kind 5 events referencing any of *event_ids*."""
        if not event_ids:
            return []
        return await self.get_events_on_eose([self.deletions_filter(event_ids)])

    # -------------------------------------------------------------------------
    # Discussion listing
    # -------------------------------------------------------------------------

    async def get_admin_discussion_lists(
        self,
        admin_pubkey: str,
        *,
        limit: int | None = None,
        until: int | None = None,
    ) -> list[SignedEvent]:
        """Return the admin's kind 34550 lists that quote discussions with ``q`` tags.

        Only the newest version of each list (per d-tag) is kept.
        """
        events = await self.get_events_on_eose(
            [
                Filter(
                    kinds=[EventKind.COMMUNITY], authors=[admin_pubkey], limit=limit, until=until
                )
            ]
        )
        return latest_by_d_tag(e for e in events if e.tag_values("q"))

    async def get_referenced_discussions(self, references: Sequence[str]) -> list[Discussion]:
        """Fetch the newest definition of every discussion coordinate in *references*.

        References that are not kind 34550 coordinates are ignored.
        """
        filters = []
        for ref in dict.fromkeys(references):
            parts = parse_coordinate(ref)
            if parts is None or parts[0] != EventKind.COMMUNITY:
                continue
            _, pubkey, d_tag = parts
            filters.append(self.discussion_meta_filter(pubkey, d_tag))
        if not filters:
            return []
        return latest_discussions(await self.get_events_on_eose(filters))

    async def get_approved_user_discussions(
        self,
        admin_pubkey: str,
        *,
        limit: int | None = None,
        until: int | None = None,
    ) -> list[ApprovedDiscussion]:
        """Join the admin's approval lists with the discussions they quote.

        Returns:
            One entry per approved discussion that could be fetched, most
            recently approved first.
        """
        lists = await self.get_admin_discussion_lists(admin_pubkey, limit=limit, until=until)
        approvals = approved_discussion_references(lists)
        discussions = await self.get_referenced_discussions(list(approvals))
        approved = [
            ApprovedDiscussion(
                discussion=d,
                approval_event=approvals[d.id],
                approved_at=approvals[d.id].created_at,
            )
            for d in discussions
            if d.id in approvals
        ]
        approved.sort(key=lambda a: a.approved_at, reverse=True)
        self._logger.debug(
            "approved_discussions_loaded", lists=len(lists), discussions=len(approved)
        )
        return approved

    async def get_listing_requests(
        self,
        discussion_list_id: str,
        *,
        limit: int | None = 50,
        until: int | None = None,
    ) -> list[SignedEvent]:
        """Return the posts submitted to the discussion list community."""
        return await self.get_events_on_eose(
            [self.listing_requests_filter(discussion_list_id, limit, until)]
        )

    async def get_pending_user_discussions(
        self, admin_pubkey: str, discussion_list_id: str
    ) -> list[DiscussionListingRequest]:
        """Return the newest listing request of each discussion the admin has not listed.

        Discussions authored by the admin are never pending.
        """
        requests = parse_listing_requests(await self.get_listing_requests(discussion_list_id))
        approved = approved_discussion_references(
            await self.get_admin_discussion_lists(admin_pubkey)
        )
        pending: dict[str, DiscussionListingRequest] = {}
        for request in requests:
            parts = parse_coordinate(request.discussion_id)
            if parts is None or parts[1] == admin_pubkey or request.discussion_id in approved:
                continue
            pending.setdefault(request.discussion_id, request)
        return list(pending.values())

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    async def publish_signed_event(self, event: SignedEvent) -> bool:
        """Publish *event* to the write relays; True iff one acknowledged it."""
        return await self._pool.publish(event)


def create_nostr_service(
    config: NostrServiceConfig,
    transport: RelayTransport | None = None,
    keys: Keys | None = None,
) -> NostrService:
    """Build a [NostrService][discussr.services.nostr.NostrService] from configuration.

    Args:
        config: Relay list and timeouts.
        transport: Network implementation; defaults to nostr-sdk clients for
            the configured relays.
        keys: Optional keys for NIP-42 authentication.
    """
    if transport is None:
        pool = RelayPool.from_config(config, keys)
    else:
        pool = RelayPool(transport, timeout=config.default_timeout)
    return NostrService(pool, default_timeout=config.default_timeout)
