"""Relay transport: the network edge of the relay pool.

[RelayTransport][discussr.utils.transport.RelayTransport] is the narrow
interface the [RelayPool][discussr.services.pool.RelayPool] needs from the
network: fetch stored events for one filter, stream stored events for one
filter until EOSE, and send one event to the write relays.

[NostrSdkTransport][discussr.utils.transport.NostrSdkTransport] implements
it with two ``nostr_sdk.Client`` instances, one connected to the read relays
and one to the write relays, so that a relay listed only for reading never
receives published events.

Note:
    Events from relays are untrusted. Every event is signature-checked with
    ``nostr_sdk.Event.verify()`` before it is converted to a
    [SignedEvent][discussr.models.event.SignedEvent]; failures are dropped
    and logged at DEBUG level.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Protocol

from nostr_sdk import ClientBuilder, NostrSdkError, NostrSigner, RelayUrl

from discussr.models.event import SignedEvent


if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from nostr_sdk import Client, Keys
    from nostr_sdk import Event as NostrEvent

    from discussr.models.filter import Filter


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


@dataclass(frozen=True, slots=True)
class SendResult:
    """Per-relay outcome of sending one event."""

    accepted: tuple[str, ...] = ()
    rejected: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return bool(self.accepted)


class RelayTransport(Protocol):
    """What the relay pool needs from the network."""

    async def connect(self) -> None: ...

    async def fetch(  # noqa: ASYNC109
        self, event_filter: Filter, timeout: float
    ) -> list[SignedEvent]:
        """Return the stored events matching *event_filter*."""
        ...

    def stream(self, event_filter: Filter, timeout: float) -> AsyncIterator[SignedEvent]:
        """Yield stored events matching *event_filter*; exhaustion means EOSE."""
        ...

    async def send(self, event: SignedEvent) -> SendResult: ...

    async def close(self) -> None: ...


def _convert(evt: NostrEvent) -> SignedEvent | None:
    try:
        if not evt.verify():
            logger.debug("event_signature_invalid id=%s", evt.id().to_hex()[:16])
            return None
        return SignedEvent.from_nostr(evt)
    except (ValueError, TypeError, NostrSdkError) as e:
        logger.debug("event_conversion_failed error=%s", e)
        return None


async def create_client(relay_urls: Sequence[str], keys: Keys | None = None) -> Client:
    """Create a client with *relay_urls* added but not yet connected.

    Args:
        relay_urls: Relays this client talks to.
        keys: Optional signing keys, needed only for NIP-42 authentication.
    """
    builder = ClientBuilder()
    if keys is not None:
        builder = builder.signer(NostrSigner.keys(keys))
    client = builder.build()
    for url in relay_urls:
        await client.add_relay(RelayUrl.parse(url))
    return client


class NostrSdkTransport:
    """[RelayTransport][discussr.utils.transport.RelayTransport] backed by nostr-sdk.

    Args:
        read_urls: Relays used for ``fetch`` and ``stream``.
        write_urls: Relays used for ``send``.
        keys: Optional keys for relays requiring NIP-42 authentication.
    """

    def __init__(
        self,
        read_urls: Sequence[str],
        write_urls: Sequence[str],
        keys: Keys | None = None,
    ) -> None:
        self._read_urls = list(read_urls)
        self._write_urls = list(write_urls)
        self._keys = keys
        self._reader: Client | None = None
        self._writer: Client | None = None
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        """Connect both clients. Idempotent."""
        async with self._lock:
            if self._reader is None and self._read_urls:
                self._reader = await create_client(self._read_urls, self._keys)
                await self._reader.connect()
                logger.debug("transport_read_connected relays=%s", len(self._read_urls))
            if self._writer is None and self._write_urls:
                self._writer = await create_client(self._write_urls, self._keys)
                await self._writer.connect()
                logger.debug("transport_write_connected relays=%s", len(self._write_urls))

    async def _read_client(self) -> Client | None:
        if self._reader is None:
            await self.connect()
        return self._reader

    async def fetch(  # noqa: ASYNC109
        self, event_filter: Filter, timeout: float
    ) -> list[SignedEvent]:
        client = await self._read_client()
        if client is None:
            return []
        events = await client.fetch_events(event_filter.to_nostr(), timedelta(seconds=timeout))
        return [e for e in map(_convert, events.to_vec()) if e is not None]

    async def stream(  # noqa: ASYNC109
        self, event_filter: Filter, timeout: float
    ) -> AsyncIterator[SignedEvent]:
        client = await self._read_client()
        if client is None:
            return
        stream = await client.stream_events(
            event_filter.to_nostr(), timeout=timedelta(seconds=timeout)
        )
        while True:
            evt = await stream.next()
            if evt is None:
                return
            converted = _convert(evt)
            if converted is not None:
                yield converted

    async def send(self, event: SignedEvent) -> SendResult:
        if self._writer is None:
            await self.connect()
        if self._writer is None:
            return SendResult()
        output = await self._writer.send_event(event.to_nostr())
        return SendResult(
            accepted=tuple(str(url) for url in output.success),
            rejected={str(url): str(reason) for url, reason in output.failed.items()},
        )

    async def close(self) -> None:
        """Shut down both clients, suppressing FFI shutdown errors."""
        async with self._lock:
            for client in (self._reader, self._writer):
                if client is not None:
                    # nostr-sdk FFI can raise arbitrary exception types during shutdown
                    with contextlib.suppress(Exception):
                        await client.shutdown()
            self._reader = None
            self._writer = None
