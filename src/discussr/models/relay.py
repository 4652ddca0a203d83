"""
Validated relay endpoint with read/write roles.

A relay URL must be a ``ws://`` or ``wss://`` URI with a host. The same URL
may be used for reading, writing, or both; the
[RelayPool][discussr.services.pool.RelayPool] derives its read and write
sets from these flags.
"""

from __future__ import annotations

from dataclasses import dataclass

from rfc3986 import uri_reference
from rfc3986.exceptions import UnpermittedComponentError, ValidationError
from rfc3986.validators import Validator


def normalize_relay_url(raw: str) -> str:
    """Validate and normalize a relay URL.

    The scheme and host are lowercased, the trailing slash is dropped and
    the default port for the scheme is stripped.

    Raises:
        ValueError: If the URL is not a valid ``ws``/``wss`` URI.
    """
    if "\x00" in raw:
        raise ValueError("Relay URL contains null bytes")

    uri = uri_reference(raw.strip()).normalize()
    validator = (
        Validator()
        .require_presence_of("scheme", "host")
        .allow_schemes("ws", "wss")
        .check_validity_of("scheme", "host", "port", "path")
    )
    try:
        validator.validate(uri)
    except UnpermittedComponentError:
        raise ValueError("Invalid scheme: must be ws or wss") from None
    except ValidationError as e:
        raise ValueError(f"Invalid URL: {e}") from None

    if uri.query or uri.fragment:
        raise ValueError("Relay URL must not contain a query string or fragment")

    port = uri.port
    if (uri.scheme, port) in (("ws", "80"), ("wss", "443")):
        port = None
    authority = uri.host if port is None else f"{uri.host}:{port}"
    path = (uri.path or "").rstrip("/")
    return f"{uri.scheme}://{authority}{path}"


@dataclass(frozen=True, slots=True)
class RelayEndpoint:
    """A relay URL with its read and write roles.

    Attributes:
        url: Normalized ``ws://`` or ``wss://`` URL.
        read: Whether queries and subscriptions go to this relay.
        write: Whether published events go to this relay.

    Raises:
        ValueError: If the URL is invalid or both roles are disabled.

    Examples:
        ```python
        RelayEndpoint("wss://relay.damus.io/").url   # 'wss://relay.damus.io'
        ```
    """

    url: str
    read: bool = True
    write: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "url", normalize_relay_url(self.url))
        if not (self.read or self.write):
            raise ValueError(f"Relay {self.url} must be readable, writable, or both")
