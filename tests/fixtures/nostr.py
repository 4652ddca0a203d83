"""Shared Nostr fixtures: event factory, in-memory transport and signer.

Usage: Registered via ``pytest_plugins`` in the root ``conftest.py``. Tests
that need the helpers outside fixtures import them from this module.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
from collections.abc import AsyncIterator, Iterable, Sequence
from typing import Any

import pytest

from discussr.models import EventKind, Filter, SignedEvent, UnsignedEvent
from discussr.utils.transport import SendResult


BASE_TIME = 1_700_000_000
FAKE_RELAY = "wss://relay.example.com"


# =============================================================================
# Keys and events
# =============================================================================


def hex_key(label: str) -> str:
    """Deterministic 64-char hex string derived from *label*."""
    return hashlib.sha256(label.encode()).hexdigest()


def compute_id(
    pubkey: str, created_at: int, kind: int, tags: Sequence[Sequence[str]], content: str
) -> str:
    """NIP-01 event id."""
    payload = json.dumps(
        [0, pubkey, created_at, kind, [list(t) for t in tags], content],
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(payload.encode()).hexdigest()


def make_event(
    kind: int = EventKind.COMMENT,
    content: str = "",
    tags: Iterable[Sequence[str]] = (),
    created_at: int = BASE_TIME,
    author: str = "alice",
    event_id: str | None = None,
) -> SignedEvent:
    """Build a ``SignedEvent`` with a NIP-01 id; *author* is a key label."""
    tag_list = [tuple(t) for t in tags]
    pubkey = hex_key(author)
    return SignedEvent(
        id=event_id or compute_id(pubkey, created_at, int(kind), tag_list, content),
        pubkey=pubkey,
        created_at=created_at,
        kind=int(kind),
        tags=tag_list,
        content=content,
        sig="f" * 128,
    )


# =============================================================================
# Transport
# =============================================================================


class FakeTransport:
    """In-memory ``RelayTransport``.

    ``fetch`` and ``stream`` return the stored events matching a filter in
    insertion order, duplicates included. Filters in ``failing`` raise
    ``OSError``. With ``stall=True`` streams never reach EOSE.
    """

    def __init__(
        self,
        events: Iterable[SignedEvent] = (),
        *,
        failing: Iterable[Filter] = (),
        stall: bool = False,
        accept: bool = True,
    ) -> None:
        self.events = list(events)
        self.failing = set(failing)
        self.stall = stall
        self.accept = accept
        self.fetched: list[Filter] = []
        self.streamed: list[Filter] = []
        self.sent: list[SignedEvent] = []
        self.connected = False
        self.closed = False

    def matching(self, event_filter: Filter) -> list[SignedEvent]:
        return [e for e in self.events if event_filter.matches(e)]

    async def connect(self) -> None:
        self.connected = True

    async def fetch(
        self,
        event_filter: Filter,
        timeout: float,  # noqa: ASYNC109
    ) -> list[SignedEvent]:
        self.fetched.append(event_filter)
        if event_filter in self.failing:
            raise OSError("relay unreachable")
        return self.matching(event_filter)

    async def stream(
        self,
        event_filter: Filter,
        timeout: float,  # noqa: ASYNC109
    ) -> AsyncIterator[SignedEvent]:
        self.streamed.append(event_filter)
        if event_filter in self.failing:
            raise OSError("relay unreachable")
        for event in self.matching(event_filter):
            await asyncio.sleep(0)
            yield event
        if self.stall:
            await asyncio.Event().wait()

    async def send(self, event: SignedEvent) -> SendResult:
        self.sent.append(event)
        if self.accept:
            return SendResult(accepted=(FAKE_RELAY,))
        return SendResult(rejected={FAKE_RELAY: "blocked: write restricted"})

    async def close(self) -> None:
        self.closed = True


# =============================================================================
# Signer
# =============================================================================


class FakeSigner:
    """``Signer`` producing NIP-01 ids for a labelled key, without real signatures."""

    def __init__(self, label: str = "alice", *, error: Exception | None = None) -> None:
        self.pubkey = hex_key(label)
        self.error = error
        self.signed: list[UnsignedEvent] = []

    async def get_public_key(self) -> str:
        return self.pubkey

    async def sign_event(self, template: UnsignedEvent) -> SignedEvent:
        if self.error is not None:
            raise self.error
        self.signed.append(template)
        return SignedEvent(
            id=compute_id(
                self.pubkey, template.created_at, template.kind, template.tags, template.content
            ),
            pubkey=self.pubkey,
            created_at=template.created_at,
            kind=template.kind,
            tags=template.tags,
            content=template.content,
            sig="e" * 128,
        )


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_transport() -> FakeTransport:
    """Empty in-memory transport."""
    return FakeTransport()


@pytest.fixture
def signer() -> FakeSigner:
    """Signer for the key labelled ``alice``."""
    return FakeSigner("alice")


@pytest.fixture
def discussion_id() -> str:
    """Coordinate of a discussion authored by ``admin``."""
    return f"34550:{hex_key('admin')}:bus-stops"


@pytest.fixture
def discussion_event() -> SignedEvent:
    """Kind 34550 definition with ``mod1`` and ``mod2`` as moderators."""
    return make_event(
        kind=EventKind.COMMUNITY,
        content="Notes about bus stops",
        tags=[
            ("d", "bus-stops"),
            ("name", "Bus stops"),
            ("description", "Notes about bus stops"),
            ("p", hex_key("mod1"), "", "moderator"),
            ("p", hex_key("mod2"), "", "moderator"),
        ],
        author="admin",
    )


def post_event(
    discussion: str,
    content: str = "hello",
    *,
    author: str = "bob",
    created_at: int = BASE_TIME,
    bus_stop: str | None = None,
) -> SignedEvent:
    """Kind 1111 post in *discussion*."""
    tags: list[tuple[str, ...]] = [("a", discussion), ("A", discussion)]
    if bus_stop:
        tags.append(("t", bus_stop))
    return make_event(
        kind=EventKind.COMMENT, content=content, tags=tags, created_at=created_at, author=author
    )


def approval_event(
    post: SignedEvent,
    discussion: str,
    *,
    moderator: str = "mod1",
    created_at: int = BASE_TIME + 60,
) -> SignedEvent:
    """Kind 4550 approval of *post* by *moderator*."""
    return make_event(
        kind=EventKind.APPROVAL,
        content=post.to_json(),
        tags=[("a", discussion), ("e", post.id), ("p", post.pubkey), ("k", str(post.kind))],
        created_at=created_at,
        author=moderator,
    )


def evaluation_event(
    post: SignedEvent,
    rating: str,
    *,
    author: str = "carol",
    created_at: int = BASE_TIME + 120,
    **extra: Any,
) -> SignedEvent:
    """Kind 7 evaluation of *post*."""
    tags: list[tuple[str, ...]] = [("e", post.id), ("rating", rating)]
    if extra.get("discussion"):
        tags.append(("a", extra["discussion"]))
    return make_event(
        kind=EventKind.REACTION, content=rating, tags=tags, created_at=created_at, author=author
    )


def revocation_event(
    approval: SignedEvent,
    *,
    moderator: str = "mod1",
    created_at: int = BASE_TIME + 90,
) -> SignedEvent:
    """Kind 5 deletion of *approval* issued by *moderator*."""
    return make_event(
        kind=EventKind.DELETION,
        content="Revoked approval",
        tags=[("e", approval.id)],
        created_at=created_at,
        author=moderator,
    )
