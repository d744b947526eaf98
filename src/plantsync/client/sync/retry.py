"""Backoff policy and network-aware waiting.

This module provides:
- RetryPolicy: Exponential backoff between reconciliation passes
- NetworkMonitor: Capability telling whether the remote is reachable
- HealthCheckMonitor: NetworkMonitor polling the remote health endpoint
- wait_for_network: Wait for connectivity to be restored
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)

# Default retry configuration
DEFAULT_INITIAL_BACKOFF = 1.0  # seconds
DEFAULT_MAX_BACKOFF = 300.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0

# Network-aware retry configuration
NETWORK_CHECK_INTERVAL = 5.0  # seconds between network checks
STILL_WAITING_LOG_INTERVAL = 60.0  # seconds


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff between passes that ended RETRY_LATER.

    There is no attempt limit: FAILED records are retried as long as the
    job keeps running. Only the delay is capped.

    Attributes:
        initial_backoff: Delay before the first retry, in seconds.
        max_backoff: Upper bound of the delay, in seconds.
        multiplier: Factor applied to the delay after each retry.
    """

    initial_backoff: float = DEFAULT_INITIAL_BACKOFF
    max_backoff: float = DEFAULT_MAX_BACKOFF
    multiplier: float = DEFAULT_BACKOFF_MULTIPLIER

    def __post_init__(self) -> None:
        if self.initial_backoff < 0 or self.max_backoff < 0:
            raise ValueError("Backoff delays must not be negative")
        if self.multiplier < 1:
            raise ValueError("Backoff multiplier must be at least 1")

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        if attempt < 1:
            return 0.0
        delay = self.initial_backoff * self.multiplier ** (attempt - 1)
        return min(delay, self.max_backoff)


class NetworkMonitor(Protocol):
    """Tells whether the remote is reachable."""

    async def is_available(self) -> bool: ...

    async def wait_until_available(self) -> None: ...


async def wait_for_network(
    health_check: Callable[[], Awaitable[bool]],
    check_interval: float = NETWORK_CHECK_INTERVAL,
) -> float:
    """Poll ``health_check`` every ``check_interval`` seconds until it succeeds.

    Returns:
        Seconds spent waiting.
    """
    logger.info("Remote unreachable, polling every %.1fs", check_interval)
    report_every = 1
    if check_interval > 0:
        report_every = max(1, round(STILL_WAITING_LOG_INTERVAL / check_interval))

    waited = 0.0
    checks = 0
    while True:
        await asyncio.sleep(check_interval)
        waited += check_interval
        checks += 1
        if await health_check():
            logger.info("Remote reachable again after %.0fs", waited)
            return waited
        if checks % report_every == 0:
            logger.info("Still waiting for the remote (%.0fs elapsed)", waited)


class HealthCheckMonitor:
    """NetworkMonitor backed by a remote health check."""

    def __init__(
        self,
        health_check: Callable[[], Awaitable[bool]],
        check_interval: float = NETWORK_CHECK_INTERVAL,
    ) -> None:
        """Initialize the monitor.

        Args:
            health_check: Coroutine function, e.g. RemoteDataSource.health_check.
            check_interval: Seconds between checks while waiting.
        """
        self._health_check = health_check
        self._check_interval = check_interval

    async def is_available(self) -> bool:
        """Check connectivity once."""
        return await self._health_check()

    async def wait_until_available(self) -> None:
        """Return once the remote is reachable."""
        if await self._health_check():
            return
        await wait_for_network(self._health_check, check_interval=self._check_interval)
