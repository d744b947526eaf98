"""Shared configuration classes for plantsync."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class RemoteConfig:
    """Configuration for connecting to the remote document store.

    Attributes:
        base_url: Base URL of the remote (e.g., "https://api.plantcare.app").
        token: Bearer token of the current session.
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    base_url: str
    token: str
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize base URL."""
        self.base_url = self.base_url.rstrip("/")

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS."""
        return self.base_url.startswith("https://")
