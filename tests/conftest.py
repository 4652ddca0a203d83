"""
Pytest configuration and shared fixtures for discussr tests.

Provides:
- Nostr fixtures (events, in-memory transport, signer) via ``pytest_plugins``
- Service fixtures wired to the in-memory transport
- Custom pytest markers for test categorization
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest

from discussr.core.config import NostrServiceConfig
from discussr.services.nostr import NostrService
from discussr.services.pool import RelayPool


if TYPE_CHECKING:
    from tests.fixtures.nostr import FakeTransport


pytest_plugins = ["tests.fixtures.nostr"]


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def config() -> NostrServiceConfig:
    """Single-relay configuration with a short EOSE timeout."""
    return NostrServiceConfig(relays=[{"url": "wss://relay.example.com"}], default_timeout=0.5)


@pytest.fixture
def pool(fake_transport: FakeTransport) -> RelayPool:
    """Relay pool over the empty in-memory transport."""
    return RelayPool(fake_transport, timeout=0.5)


@pytest.fixture
def service(pool: RelayPool) -> NostrService:
    """Service over the in-memory pool."""
    return NostrService(pool, default_timeout=0.5)


# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests (no external dependencies)")
    config.addinivalue_line("markers", "slow: marks tests as slow running")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on location."""
    for item in items:
        if "unit" in str(item.path):
            item.add_marker(pytest.mark.unit)
