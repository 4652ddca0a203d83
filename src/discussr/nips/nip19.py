"""NIP-19 bech32 identifiers and NIP-01 coordinates.

Discussions are addressable events: they are referenced by the coordinate
``"34550:<author hex pubkey>:<d-tag>"`` inside tags, and by an ``naddr``
bech32 string when shared. Public keys are stored as hex everywhere and only
converted to ``npub`` for display and user input.

All bech32 work is delegated to ``nostr_sdk``.

Examples:
    ```python
    naddr = build_discussion_naddr(pubkey_hex, "bus-stops")
    info = extract_discussion_from_naddr(naddr)
    info.discussion_id   # '34550:<pubkey_hex>:bus-stops'
    ```
"""

from __future__ import annotations

import logging
import re
import secrets
import time

from nostr_sdk import Coordinate, Kind, Nip19Coordinate, NostrSdkError, PublicKey, RelayUrl

from discussr.models.constants import EventKind
from discussr.models.discussion import DiscussionInfo


logger = logging.getLogger(__name__)

_HEX64 = re.compile(r"^[0-9a-fA-F]{64}$")
_NIP19_REFERENCE = re.compile(r"(npub|nsec|note|nprofile|nevent|naddr|nrelay)1[a-zA-Z0-9]+")


# =============================================================================
# Public keys
# =============================================================================


def hex_to_npub(hex_pubkey: str) -> str:
    """Encode a hex public key as ``npub``; returns the input unchanged if invalid."""
    try:
        return PublicKey.parse(hex_pubkey).to_bech32()
    except NostrSdkError as e:
        logger.debug("npub_encode_failed value=%s error=%s", hex_pubkey[:16], e)
        return hex_pubkey


def npub_to_hex(value: str) -> str:
    """Decode an ``npub`` to hex; hex input and undecodable input are returned as is."""
    if not value.startswith("npub1"):
        return value
    try:
        return PublicKey.parse(value).to_hex()
    except NostrSdkError as e:
        logger.debug("npub_decode_failed value=%s error=%s", value[:16], e)
        return value


def is_valid_npub(value: str) -> bool:
    """Return True for a decodable ``npub`` or a 64-character hex key."""
    if value.startswith("npub1"):
        try:
            PublicKey.parse(value)
        except NostrSdkError:
            return False
        return True
    return bool(_HEX64.match(value))


def extract_nip19_references(content: str) -> list[str]:
    """Return every bech32 NIP-19 entity mentioned in *content*, in order."""
    return [m.group(0) for m in _NIP19_REFERENCE.finditer(content)]


# =============================================================================
# Coordinates
# =============================================================================


def build_discussion_id(author_pubkey: str, d_tag: str) -> str:
    """Return the coordinate of the discussion *d_tag* authored by *author_pubkey*."""
    return f"{int(EventKind.COMMUNITY)}:{author_pubkey}:{d_tag}"


def parse_coordinate(coordinate: str) -> tuple[int, str, str] | None:
    """Split ``"<kind>:<pubkey>:<d-tag>"`` into its parts.

    The d-tag may itself contain colons. Returns ``None`` when the kind is
    not numeric or a part is missing.
    """
    parts = coordinate.split(":", 2)
    if len(parts) != 3 or not parts[0].isdigit() or not parts[1] or not parts[2]:  # noqa: PLR2004
        return None
    return int(parts[0]), parts[1], parts[2]


def generate_d_tag() -> str:
    """Return a fresh d-tag made of a base-36 timestamp and a random suffix."""
    millis = int(time.time() * 1000)
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    stamp = ""
    while millis:
        millis, rem = divmod(millis, 36)
        stamp = digits[rem] + stamp
    return f"{stamp or '0'}-{secrets.token_hex(3)}"


# =============================================================================
# naddr
# =============================================================================


def naddr_encode(
    pubkey: str,
    identifier: str,
    kind: int = EventKind.COMMUNITY,
    relays: list[str] | None = None,
) -> str:
    """Encode an addressable-event pointer as ``naddr``.

    Raises:
        ValueError: If the pubkey is not hex, the identifier is empty, or
            the kind is negative.
    """
    if not identifier:
        raise ValueError("naddr identifier must not be empty")
    if not _HEX64.match(pubkey):
        raise ValueError("naddr pubkey must be 64 hex characters")
    if kind < 0:
        raise ValueError(f"naddr kind must be non-negative, got {kind}")

    coordinate = Coordinate(Kind(int(kind)), PublicKey.parse(pubkey), identifier)
    relay_urls = [RelayUrl.parse(r) for r in relays or []]
    return Nip19Coordinate(coordinate, relay_urls).to_bech32()


def naddr_decode(naddr: str) -> DiscussionInfo:
    """Decode an ``naddr`` into its pointer fields.

    Raises:
        ValueError: If *naddr* is not a valid ``naddr`` string.
    """
    if not naddr.startswith("naddr1"):
        raise ValueError("naddr must start with 'naddr1'")
    try:
        decoded = Nip19Coordinate.from_bech32(naddr)
    except NostrSdkError as e:
        raise ValueError(f"naddr decoding failed: {e}") from None

    coordinate = decoded.coordinate()
    return DiscussionInfo(
        pubkey=coordinate.public_key().to_hex(),
        d_tag=coordinate.identifier(),
        kind=coordinate.kind().as_u16(),
        relays=tuple(str(r) for r in decoded.relays()),
    )


def is_valid_naddr(naddr: str) -> bool:
    try:
        naddr_decode(naddr)
    except ValueError:
        return False
    return True


def parse_naddr_from_url(url_param: str) -> DiscussionInfo | None:
    """Decode an ``naddr`` path segment, ignoring any query string."""
    naddr = url_param.split("?", 1)[0]
    if not naddr.startswith("naddr1"):
        return None
    try:
        return naddr_decode(naddr)
    except ValueError as e:
        logger.debug("naddr_parse_failed value=%s error=%s", naddr[:24], e)
        return None


def extract_discussion_from_naddr(naddr: str) -> DiscussionInfo | None:
    """Decode an ``naddr`` that points at a discussion (kind 34550).

    Returns ``None`` for invalid input or any other kind.
    """
    try:
        info = naddr_decode(naddr)
    except ValueError as e:
        logger.debug("naddr_extract_failed value=%s error=%s", naddr[:24], e)
        return None
    if info.kind != EventKind.COMMUNITY:
        return None
    return info


def build_discussion_naddr(author_pubkey: str, d_tag: str, relays: list[str] | None = None) -> str:
    """Encode the ``naddr`` of a discussion."""
    return naddr_encode(author_pubkey, d_tag, EventKind.COMMUNITY, relays)


def naddr_from_coordinate(coordinate: str, relays: list[str] | None = None) -> str:
    """Encode a ``"<kind>:<pubkey>:<d-tag>"`` coordinate as ``naddr``.

    Raises:
        ValueError: If the coordinate is malformed.
    """
    parts = parse_coordinate(coordinate)
    if parts is None:
        raise ValueError(f"invalid coordinate: {coordinate!r}")
    kind, pubkey, identifier = parts
    return naddr_encode(pubkey, identifier, kind, relays)
