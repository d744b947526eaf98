"""Shared types for plantsync.

This module defines the sync state carried by every syncable record.
"""

from __future__ import annotations

from enum import Enum


class SyncState(str, Enum):
    """Sync state of a locally stored record.

    PENDING: written locally, not yet confirmed by the remote.
    SYNCED: confirmed by the remote.
    FAILED: last push was rejected; retried on every later pass.
    """

    PENDING = "PENDING"
    SYNCED = "SYNCED"
    FAILED = "FAILED"

    @classmethod
    def parse(cls, value: str | None) -> SyncState:
        """Parse a stored value, falling back to PENDING.

        Unknown or missing values are treated as PENDING so the row gets
        pushed again instead of being silently ignored.
        """
        if value is None:
            return cls.PENDING
        try:
            return cls(value)
        except ValueError:
            return cls.PENDING

    @property
    def needs_sync(self) -> bool:
        """Whether a record in this state belongs to the next candidate set."""
        return self is not SyncState.SYNCED


# States picked up by a reconciliation pass
PENDING_STATES: tuple[SyncState, ...] = (SyncState.PENDING, SyncState.FAILED)
