"""
Prometheus metrics and HTTP exposition.

Module-level metric objects are shared by every pool and service in the
process. The relay pool counts received events, failed filters and publish
outcomes; the streaming service counts duplicate deliveries and EOSE
timeouts.

[MetricsServer][discussr.core.metrics.MetricsServer] exposes them over
aiohttp for scraping while ``python -m discussr watch`` runs.

Architecture:
    RELAY_EVENTS:      Events delivered by relays, per operation.
    RELAY_ERRORS:      Filters or publishes that raised, per operation.
    PUBLISH_RESULTS:   Publish outcomes (``accepted`` / ``rejected``).
    STREAM_COUNTER:    Stream bookkeeping (``duplicates``, ``eose``, ``timeouts``).
    ACTIVE_STREAMS:    Subscriptions currently open.
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, generate_latest
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class MetricsConfig(BaseModel):
    """Configuration for the Prometheus metrics endpoint."""

    enabled: bool = Field(default=False, description="Serve /metrics while streaming")
    port: int = Field(default=8000, ge=1024, le=65535, description="Metrics HTTP port")
    host: str = Field(default="127.0.0.1", description="Metrics HTTP bind address")
    path: str = Field(default="/metrics", description="Metrics endpoint path")


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

RELAY_EVENTS = Counter(
    "discussr_relay_events",
    "Events received from relays",
    ["operation"],
)

RELAY_ERRORS = Counter(
    "discussr_relay_errors",
    "Relay operations that failed",
    ["operation"],
)

PUBLISH_RESULTS = Counter(
    "discussr_publish_results",
    "Outcome of event publications",
    ["result"],
)

STREAM_COUNTER = Counter(
    "discussr_stream",
    "Streaming accumulator bookkeeping",
    ["name"],
)

ACTIVE_STREAMS = Gauge(
    "discussr_active_streams",
    "Subscriptions currently open",
)


# ---------------------------------------------------------------------------
# HTTP Server
# ---------------------------------------------------------------------------


class MetricsServer:
    """Async HTTP server exposing a Prometheus-compatible endpoint."""

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    @property
    def running(self) -> bool:
        return self._runner is not None

    async def start(self) -> None:
        """Bind the endpoint; no-op when metrics are disabled.

        Raises:
            OSError: If the port is already in use.
        """
        if not self._config.enabled or self._runner is not None:
            return

        app = web.Application()
        app.router.add_get(self._config.path, self._handle_metrics)
        self._runner = web.AppRunner(app, access_log=None)
        await self._runner.setup()
        await web.TCPSite(self._runner, self._config.host, self._config.port).start()

    async def stop(self) -> None:
        """Release the port. Safe to call when never started."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None

    @staticmethod
    async def _handle_metrics(_request: web.Request) -> web.Response:
        return web.Response(body=generate_latest(), headers={"Content-Type": CONTENT_TYPE_LATEST})
