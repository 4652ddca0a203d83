"""
Unit tests for core.config module.

Tests:
- RelayConfig URL normalization and role checks
- NostrServiceConfig defaults, admin key normalization, discussion id check
- from_dict() / from_yaml() error mapping to ConfigurationError
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from discussr.core.config import DEFAULT_RELAYS, NostrServiceConfig, RelayConfig
from discussr.core.exceptions import ConfigurationError


ADMIN_HEX = "3bf0c63fcb93463407af97a5e5ee64fa883d107ef9e558472c4eb9aaaefa459d"
ADMIN_NPUB = "npub180cvv07tjdrrgpa0j7j7tmnyl2yr6yr7l8j4s3evf6u64th6gkwsyjh6w6"


class TestRelayConfig:
    """RelayConfig validation."""

    def test_url_normalized(self):
        assert RelayConfig(url="WSS://Relay.Example.com/").url == "wss://relay.example.com"

    def test_invalid_url(self):
        with pytest.raises(ValidationError):
            RelayConfig(url="https://relay.example.com")

    def test_no_role(self):
        with pytest.raises(ValidationError, match="readable, writable"):
            RelayConfig(url="wss://relay.example.com", read=False, write=False)

    def test_to_endpoint(self):
        endpoint = RelayConfig(url="wss://relay.example.com", write=False).to_endpoint()
        assert endpoint.url == "wss://relay.example.com"
        assert not endpoint.write


class TestNostrServiceConfig:
    """NostrServiceConfig fields."""

    def test_defaults(self):
        config = NostrServiceConfig()
        assert [r.url for r in config.relays] == list(DEFAULT_RELAYS)
        assert config.default_timeout == 5.0
        assert config.admin_pubkey is None
        assert config.discussion_id is None
        assert config.discussion_list_id is None
        assert config.metrics.enabled is False

    def test_read_write_urls(self):
        config = NostrServiceConfig(
            relays=[
                {"url": "wss://a.example.com"},
                {"url": "wss://b.example.com", "write": False},
                {"url": "wss://c.example.com", "read": False},
            ]
        )
        assert config.read_urls == ["wss://a.example.com", "wss://b.example.com"]
        assert config.write_urls == ["wss://a.example.com", "wss://c.example.com"]
        assert len(config.endpoints) == 3

    def test_empty_relays_rejected(self):
        with pytest.raises(ValidationError):
            NostrServiceConfig(relays=[])

    @pytest.mark.parametrize("timeout", [0, -1, 301])
    def test_timeout_bounds(self, timeout: float):
        with pytest.raises(ValidationError):
            NostrServiceConfig(default_timeout=timeout)

    def test_admin_npub_converted_to_hex(self):
        assert NostrServiceConfig(admin_pubkey=ADMIN_NPUB).admin_pubkey == ADMIN_HEX

    def test_admin_hex_kept(self):
        assert NostrServiceConfig(admin_pubkey=ADMIN_HEX).admin_pubkey == ADMIN_HEX

    def test_blank_admin_is_none(self):
        assert NostrServiceConfig(admin_pubkey="  ").admin_pubkey is None

    def test_invalid_admin(self):
        with pytest.raises(ValidationError, match="invalid public key"):
            NostrServiceConfig(admin_pubkey="not-a-key")

    def test_discussion_id_accepted(self):
        coordinate = f"34550:{ADMIN_HEX}:bus-stops"
        assert NostrServiceConfig(discussion_id=coordinate).discussion_id == coordinate

    def test_discussion_id_malformed(self):
        with pytest.raises(ValidationError, match="discussion_id"):
            NostrServiceConfig(discussion_id="bus-stops")

    def test_discussion_list_id(self):
        coordinate = f"34550:{ADMIN_HEX}:discussion-list"
        config = NostrServiceConfig(discussion_list_id=coordinate)
        assert config.discussion_list_id == coordinate
        with pytest.raises(ValidationError, match="discussion_list_id must be"):
            NostrServiceConfig(discussion_list_id="discussion-list")


class TestLoading:
    """from_dict() and from_yaml()."""

    def test_from_dict_error(self):
        with pytest.raises(ConfigurationError):
            NostrServiceConfig.from_dict({"default_timeout": "soon"})

    def test_from_yaml(self, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "relays:\n"
            "  - url: wss://relay.example.com\n"
            "    write: false\n"
            "default_timeout: 2.5\n"
            f"admin_pubkey: {ADMIN_NPUB}\n"
            "metrics:\n"
            "  enabled: true\n"
            "  port: 9100\n"
        )
        config = NostrServiceConfig.from_yaml(path)
        assert config.read_urls == ["wss://relay.example.com"]
        assert config.write_urls == []
        assert config.default_timeout == 2.5
        assert config.admin_pubkey == ADMIN_HEX
        assert config.metrics.port == 9100

    def test_from_yaml_missing(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            NostrServiceConfig.from_yaml(tmp_path / "missing.yaml")

    def test_from_yaml_invalid_syntax(self, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_text("relays: [unclosed\n")
        with pytest.raises(ConfigurationError):
            NostrServiceConfig.from_yaml(path)

    def test_from_yaml_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            NostrServiceConfig.from_yaml(path)

    def test_from_yaml_empty_uses_defaults(self, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert NostrServiceConfig.from_yaml(path).default_timeout == 5.0
