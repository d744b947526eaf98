"""Tests for core configuration classes."""

from __future__ import annotations

from plantsync.core.config import RemoteConfig


class TestRemoteConfig:
    """Tests for RemoteConfig class."""

    def test_init_basic(self) -> None:
        """Should initialize with required fields."""
        config = RemoteConfig(base_url="https://example.com", token="test-token")
        assert config.base_url == "https://example.com"
        assert config.token == "test-token"
        assert config.timeout == 30.0
        assert config.verify_ssl is True

    def test_init_custom_values(self) -> None:
        """Should accept custom timeout and verify_ssl."""
        config = RemoteConfig(
            base_url="https://example.com",
            token="test-token",
            timeout=5.0,
            verify_ssl=False,
        )
        assert config.timeout == 5.0
        assert config.verify_ssl is False

    def test_url_trailing_slash_removed(self) -> None:
        """Should strip trailing slashes from the base URL."""
        config = RemoteConfig(base_url="https://example.com//", token="test-token")
        assert config.base_url == "https://example.com"

    def test_is_secure(self) -> None:
        """Should report HTTPS URLs as secure."""
        assert RemoteConfig(base_url="https://example.com", token="t").is_secure
        assert not RemoteConfig(base_url="http://localhost:8000", token="t").is_secure
