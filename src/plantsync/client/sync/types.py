"""Shared types for sync operations.

This module provides:
- SyncError: Base exception for sync errors
- SyncOutcome: Aggregate result of a reconciliation pass
- RecordResult: Result of one record's unit of work
- SyncReport: Per-record results of a pass
- JobState: State of the background sync job
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum, auto

from plantsync.client.models import RecordKind
from plantsync.core.types import SyncState


class SyncError(Exception):
    """Base exception for sync errors."""


class OwnerNotFoundError(SyncError):
    """A child record's plant is missing locally, so its owner is unknown."""


class SyncOutcome(Enum):
    """Aggregate result of a reconciliation pass.

    SUCCESS: every candidate was synced, or there was nothing to do.
    RETRY_LATER: at least one record is still not synced.
    """

    SUCCESS = "success"
    RETRY_LATER = "retry_later"


@dataclass
class RecordResult:
    """Result of reconciling one record.

    Attributes:
        kind: Kind of record.
        record_id: Id of the record.
        state: State written locally, or None if the record was skipped
            (local storage error, missing parent, or a newer local edit).
        error: Failure reason for FAILED or skipped records.
    """

    kind: RecordKind
    record_id: str
    state: SyncState | None
    error: str | None = None

    @property
    def synced(self) -> bool:
        """Whether the record ended SYNCED."""
        return self.state is SyncState.SYNCED


@dataclass
class SyncReport:
    """Per-record results of one reconciliation pass."""

    results: list[RecordResult] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)
    finished_at: float | None = None

    @property
    def synced(self) -> list[RecordResult]:
        """Records that ended SYNCED."""
        return [r for r in self.results if r.synced]

    @property
    def failed(self) -> list[RecordResult]:
        """Records that ended FAILED."""
        return [r for r in self.results if r.state is SyncState.FAILED]

    @property
    def skipped(self) -> list[RecordResult]:
        """Records left in their prior state."""
        return [r for r in self.results if r.state is None]

    @property
    def outcome(self) -> SyncOutcome:
        """SUCCESS only if every candidate ended SYNCED."""
        if all(r.synced for r in self.results):
            return SyncOutcome.SUCCESS
        return SyncOutcome.RETRY_LATER

    @property
    def elapsed_time(self) -> float:
        """Duration of the pass in seconds."""
        end = self.finished_at if self.finished_at is not None else time.time()
        return end - self.started_at


class JobState(Enum):
    """State of the background sync job."""

    IDLE = auto()
    WAITING_FOR_NETWORK = auto()
    RUNNING = auto()
    BACKING_OFF = auto()
