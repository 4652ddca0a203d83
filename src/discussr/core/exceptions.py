"""discussr exception hierarchy.

Typed exceptions let callers tell input errors apart from relay failures
and signer refusals, and let ``CancelledError`` propagate untouched.

Exception hierarchy:

```text
DiscussrError (base, never raised directly)
├── ConfigurationError      config validation, missing keys, bad YAML
├── ConnectivityError       relay unreachable, network failures
│   └── RelayTimeoutError   connection or response timed out
├── ProtocolError           malformed events or filters
├── ValidationError         invalid user input, raised before any I/O
├── PermissionDeniedError   actor lacks the role for an action
├── SigningError            the signer refused or failed
└── PublishingError         no write relay acknowledged an event
```

See Also:
    [RelayPool][discussr.services.pool.RelayPool]: Logs connectivity
        failures and degrades to partial results.
    [ModerationController][discussr.services.moderation.ModerationController]:
        Turns a zero-acknowledgement publish into
        [PublishingError][discussr.core.exceptions.PublishingError].
"""

from __future__ import annotations


class DiscussrError(Exception):
    """Base exception for all discussr errors."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(DiscussrError):
    """Invalid or missing configuration (YAML, env vars, CLI flags).

    See Also:
        [NostrServiceConfig.from_yaml()][discussr.core.config.NostrServiceConfig.from_yaml]:
            Raises this when the YAML does not validate.
    """


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------


class ConnectivityError(DiscussrError):
    """Base for relay/network connectivity errors."""


class RelayTimeoutError(ConnectivityError):
    """Connection or response timed out."""


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ProtocolError(DiscussrError):
    """An event or filter violates the expected wire format."""


# ---------------------------------------------------------------------------
# Input and authorization
# ---------------------------------------------------------------------------


class ValidationError(DiscussrError, ValueError):
    """User input rejected before any event is built or published.

    Also a ``ValueError`` so generic callers can catch it as one.

    Attributes:
        errors: Field name to message, when the error comes from a form.
    """

    def __init__(self, message: str, errors: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.errors = dict(errors or {})


class PermissionDeniedError(DiscussrError):
    """The current user lacks the role required for an action."""


# ---------------------------------------------------------------------------
# Signing and publishing
# ---------------------------------------------------------------------------


class SigningError(DiscussrError):
    """The signer refused the template or failed to produce a signature."""


class PublishingError(DiscussrError):
    """No write relay acknowledged a published event.

    See Also:
        [ConnectivityError][discussr.core.exceptions.ConnectivityError]:
            Lower-level failures that usually cause this.
    """
