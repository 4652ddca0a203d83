"""
Relay pool: query, subscribe and publish over a set of untrusted relays.

The pool owns a [RelayTransport][discussr.utils.transport.RelayTransport]
and adds the semantics callers rely on:

* **query**: every filter is fetched independently. A filter that fails is
  logged and contributes nothing, without aborting its siblings. Results
  are merged and deduplicated by id (first occurrence wins).
* **subscribe**: one logical subscription over all filters. ``on_event``
  fires for every delivered event, duplicates included; ``on_eose`` fires
  exactly once, when the stored-event stream of every filter is exhausted.
  The returned [Subscription][discussr.services.pool.Subscription] closes
  idempotently.
* **publish**: the event goes to every write relay; success means at least
  one relay acknowledged it.

Relay and network failures never raise out of the pool. There are no
retries at this layer.

Examples:
    ```python
    pool = RelayPool.from_config(config)
    async with pool:
        events = await pool.query([Filter(kinds=[34550], authors=[admin])])
    ```
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Self

from nostr_sdk import NostrSdkError

from discussr.core.exceptions import ConnectivityError
from discussr.core.logger import Logger
from discussr.core.metrics import ACTIVE_STREAMS, PUBLISH_RESULTS, RELAY_ERRORS, RELAY_EVENTS
from discussr.nips.aggregation import dedupe_events
from discussr.utils.transport import DEFAULT_TIMEOUT, NostrSdkTransport


if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import TracebackType

    from nostr_sdk import Keys

    from discussr.core.config import NostrServiceConfig
    from discussr.models.event import SignedEvent
    from discussr.models.filter import Filter
    from discussr.utils.transport import RelayTransport


# Errors a relay round-trip may raise; anything else is a programming error
RELAY_FAILURES: tuple[type[BaseException], ...] = (
    OSError,
    TimeoutError,
    NostrSdkError,
    ConnectivityError,
)


class Subscription:
    """Handle to a running subscription.

    ``close()`` cancels the consumer task. It is idempotent and safe to call
    after the subscription completed on its own.
    """

    def __init__(self, task: asyncio.Task[None]) -> None:
        self._task = task
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed or self._task.done()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if not self._task.done():
            self._task.cancel()

    async def wait(self) -> None:
        """Wait until the subscription completes or is closed."""
        await asyncio.wait({self._task})


class RelayPool:
    """Shared connection to the configured read and write relays.

    Args:
        transport: Network implementation. Tests inject an in-memory one.
        timeout: Per-request relay timeout in seconds.

    See Also:
        [NostrService][discussr.services.nostr.NostrService]: Adds ordering,
            EOSE timeouts and domain queries on top of the pool.
    """

    def __init__(
        self,
        transport: RelayTransport,
        *,
        timeout: float = DEFAULT_TIMEOUT,  # noqa: ASYNC109
    ) -> None:
        self._transport = transport
        self._timeout = timeout
        self._logger = Logger("pool")

    @classmethod
    def from_config(cls, config: NostrServiceConfig, keys: Keys | None = None) -> RelayPool:
        """Build a pool talking to the relays of *config* through nostr-sdk."""
        transport = NostrSdkTransport(config.read_urls, config.write_urls, keys)
        return cls(transport, timeout=config.default_timeout)

    @property
    def transport(self) -> RelayTransport:
        return self._transport

    async def connect(self) -> None:
        await self._transport.connect()

    async def close(self) -> None:
        await self._transport.close()

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

    # -- query ---------------------------------------------------------------

    async def _fetch_one(
        self,
        event_filter: Filter,
        timeout: float,  # noqa: ASYNC109
    ) -> list[SignedEvent]:
        try:
            events = await self._transport.fetch(event_filter, timeout)
        except RELAY_FAILURES as e:
            RELAY_ERRORS.labels(operation="query").inc()
            self._logger.warning("query_filter_failed", filter=event_filter.to_json(), error=str(e))
            return []
        RELAY_EVENTS.labels(operation="query").inc(len(events))
        return events

    async def query(
        self,
        filters: Sequence[Filter],
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> list[SignedEvent]:
        """Fetch stored events for every filter and merge them.

        Returns:
            Events in filter order then relay order, deduplicated by id
            with the first occurrence kept. Unordered by time.
        """
        effective = self._timeout if timeout is None else timeout
        batches = await asyncio.gather(*(self._fetch_one(f, effective) for f in filters))
        merged = dedupe_events(e for batch in batches for e in batch)
        self._logger.debug("query_completed", filters=len(filters), events=len(merged))
        return merged

    # -- subscribe -----------------------------------------------------------

    def _invoke(self, callback: Callable[..., None], *args: object) -> None:
        try:
            callback(*args)
        except Exception as e:  # callback error boundary
            self._logger.exception("subscription_callback_failed", error=str(e))

    async def _consume(
        self,
        event_filter: Filter,
        on_event: Callable[[SignedEvent], None],
        timeout: float,  # noqa: ASYNC109
    ) -> None:
        try:
            async for event in self._transport.stream(event_filter, timeout):
                RELAY_EVENTS.labels(operation="subscribe").inc()
                self._invoke(on_event, event)
        except RELAY_FAILURES as e:
            RELAY_ERRORS.labels(operation="subscribe").inc()
            self._logger.warning(
                "subscription_filter_failed", filter=event_filter.to_json(), error=str(e)
            )

    async def _run_subscription(
        self,
        filters: Sequence[Filter],
        on_event: Callable[[SignedEvent], None],
        on_eose: Callable[[], None] | None,
        timeout: float,  # noqa: ASYNC109
    ) -> None:
        ACTIVE_STREAMS.inc()
        try:
            await asyncio.gather(*(self._consume(f, on_event, timeout) for f in filters))
        finally:
            ACTIVE_STREAMS.dec()
        self._logger.debug("subscription_eose", filters=len(filters))
        if on_eose is not None:
            self._invoke(on_eose)

    def subscribe(
        self,
        filters: Sequence[Filter],
        on_event: Callable[[SignedEvent], None],
        on_eose: Callable[[], None] | None = None,
        *,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> Subscription:
        """Open a subscription over *filters*.

        Must be called from within a running event loop. ``on_eose`` is not
        called when the subscription is closed before every filter reached
        EOSE.
        """
        effective = self._timeout if timeout is None else timeout
        task = asyncio.get_running_loop().create_task(
            self._run_subscription(list(filters), on_event, on_eose, effective)
        )
        task.add_done_callback(self._log_task_failure)
        return Subscription(task)

    def _log_task_failure(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            RELAY_ERRORS.labels(operation="subscribe").inc()
            self._logger.error("subscription_failed", error=f"{type(exc).__name__}: {exc}")

    # -- publish -------------------------------------------------------------

    async def publish(self, event: SignedEvent) -> bool:
        """Send *event* to every write relay.

        Returns:
            True iff at least one relay acknowledged the event.
        """
        try:
            result = await self._transport.send(event)
        except RELAY_FAILURES as e:
            RELAY_ERRORS.labels(operation="publish").inc()
            PUBLISH_RESULTS.labels(result="rejected").inc()
            self._logger.warning("publish_failed", event_id=event.id, kind=event.kind, error=str(e))
            return False

        for url, reason in result.rejected.items():
            self._logger.debug("publish_rejected", event_id=event.id, relay=url, reason=reason)
        PUBLISH_RESULTS.labels(result="accepted" if result.ok else "rejected").inc()
        self._logger.info(
            "publish_completed",
            event_id=event.id,
            kind=event.kind,
            accepted=len(result.accepted),
            rejected=len(result.rejected),
        )
        return result.ok
