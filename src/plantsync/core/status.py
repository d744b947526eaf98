"""Sync status transitions.

Every syncable record dataclass carries ``sync_state`` and
``last_sync_error``. The functions here are the only way those two fields
change:

    create/update      -> PENDING (error cleared)
    reconcile success  -> SYNCED  (error cleared)
    reconcile failure  -> FAILED  (error = failure message)

There is no terminal state. A SYNCED record goes back to PENDING on its next
local mutation, and FAILED records stay eligible for every later pass.
"""

from __future__ import annotations

import dataclasses
from typing import Any, TypeVar

from plantsync.core.types import SyncState

R = TypeVar("R")


def error_message(error: BaseException | str) -> str:
    """Return a human-readable failure reason, never empty."""
    if isinstance(error, str):
        return error or "Unknown error"
    return str(error) or type(error).__name__


def mark_pending(record: R) -> R:
    """Return a copy of the record after a local create/update."""
    return _with_state(record, SyncState.PENDING, None)


def mark_synced(record: R, **changes: Any) -> R:
    """Return a copy of the record after a confirmed remote acknowledgement.

    Args:
        record: Record dataclass instance.
        **changes: Extra fields resolved during the push (e.g. media URLs).
    """
    return _with_state(record, SyncState.SYNCED, None, **changes)


def mark_failed(record: R, error: BaseException | str) -> R:
    """Return a copy of the record after a confirmed remote failure."""
    return _with_state(record, SyncState.FAILED, error_message(error))


def _with_state(record: R, state: SyncState, error: str | None, **changes: Any) -> R:
    return dataclasses.replace(  # type: ignore[type-var]
        record,
        sync_state=state,
        last_sync_error=error,
        **changes,
    )
