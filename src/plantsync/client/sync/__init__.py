"""Background synchronization of local records.

Architecture:
    PlantRepository -> SyncJob -> ReconciliationEngine -> RemoteDataSource

Components:
- **ReconciliationEngine**: One pass over PENDING/FAILED records, isolated per record
- **SyncJob**: Coalesces requests, waits for network, backs off on RETRY_LATER
- **PeriodicSyncScheduler**: Requests a pass on a fixed interval
- **RetryPolicy / HealthCheckMonitor**: Backoff curve and connectivity gating
"""

from plantsync.client.sync.engine import DEFAULT_MAX_CONCURRENT, ReconciliationEngine
from plantsync.client.sync.retry import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_INITIAL_BACKOFF,
    DEFAULT_MAX_BACKOFF,
    NETWORK_CHECK_INTERVAL,
    HealthCheckMonitor,
    NetworkMonitor,
    RetryPolicy,
    wait_for_network,
)
from plantsync.client.sync.scheduler import UNIQUE_NAME, PeriodicSyncScheduler, SyncJob
from plantsync.client.sync.types import (
    JobState,
    OwnerNotFoundError,
    RecordResult,
    SyncError,
    SyncOutcome,
    SyncReport,
)

__all__ = [
    # Engine
    "DEFAULT_MAX_CONCURRENT",
    "ReconciliationEngine",
    # Retry
    "DEFAULT_BACKOFF_MULTIPLIER",
    "DEFAULT_INITIAL_BACKOFF",
    "DEFAULT_MAX_BACKOFF",
    "NETWORK_CHECK_INTERVAL",
    "HealthCheckMonitor",
    "NetworkMonitor",
    "RetryPolicy",
    "wait_for_network",
    # Scheduling
    "UNIQUE_NAME",
    "PeriodicSyncScheduler",
    "SyncJob",
    # Types
    "JobState",
    "OwnerNotFoundError",
    "RecordResult",
    "SyncError",
    "SyncOutcome",
    "SyncReport",
]
