"""Core module - Sync state, transitions and shared configuration."""

from plantsync.core.config import RemoteConfig
from plantsync.core.status import error_message, mark_failed, mark_pending, mark_synced
from plantsync.core.types import PENDING_STATES, SyncState

__all__ = [
    # Config
    "RemoteConfig",
    # Status transitions
    "error_message",
    "mark_failed",
    "mark_pending",
    "mark_synced",
    # Types
    "PENDING_STATES",
    "SyncState",
]
