"""Core layer: configuration, logging, metrics and the exception hierarchy.

Sits in the middle of the diamond DAG. Depends only on ``discussr.models``
and is depended upon by ``discussr.services``.

Attributes:
    NostrServiceConfig: Pydantic configuration for relays and timeouts.
        See [NostrServiceConfig][discussr.core.config.NostrServiceConfig].
    Logger: Structured logger supporting key=value and JSON output.
        See [Logger][discussr.core.logger.Logger].
    MetricsServer: Prometheus ``/metrics`` HTTP endpoint.
    load_yaml: Safe YAML loading with ``yaml.safe_load()``.
"""

from .config import DEFAULT_RELAYS, NostrServiceConfig, RelayConfig
from .exceptions import (
    ConfigurationError,
    ConnectivityError,
    DiscussrError,
    PermissionDeniedError,
    ProtocolError,
    PublishingError,
    RelayTimeoutError,
    SigningError,
    ValidationError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import (
    ACTIVE_STREAMS,
    PUBLISH_RESULTS,
    RELAY_ERRORS,
    RELAY_EVENTS,
    STREAM_COUNTER,
    MetricsConfig,
    MetricsServer,
)
from .yaml import load_yaml


__all__ = [
    "ACTIVE_STREAMS",
    "DEFAULT_RELAYS",
    "PUBLISH_RESULTS",
    "RELAY_ERRORS",
    "RELAY_EVENTS",
    "STREAM_COUNTER",
    "ConfigurationError",
    "ConnectivityError",
    "DiscussrError",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "NostrServiceConfig",
    "PermissionDeniedError",
    "ProtocolError",
    "PublishingError",
    "RelayConfig",
    "RelayTimeoutError",
    "SigningError",
    "StructuredFormatter",
    "ValidationError",
    "format_kv_pairs",
    "load_yaml",
]
