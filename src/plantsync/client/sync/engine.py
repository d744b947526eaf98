"""Reconciliation engine.

This module provides:
- ReconciliationEngine: pushes every PENDING/FAILED record to the remote

One pass:
    1. Load candidates (plants and their child records in PENDING or
       FAILED state). Nothing to do -> SUCCESS.
    2. Reconcile every candidate in its own coroutine, bounded by
       ``max_concurrent``. Within a plant: upload local-only media, then push
       the document, then write the local status.
    3. SUCCESS if every candidate ended SYNCED, RETRY_LATER otherwise.

Failures never cross the record boundary:
    - remote/media errors    -> record marked FAILED with the message
    - local storage errors   -> record skipped, prior state kept
    - CancelledError         -> propagates; committed writes stay

Status writes are guarded by ``updated_at``: if the user edited the record
while it was being pushed, the edit wins and the record stays PENDING.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import sqlite3
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from plantsync.client.api import plant_blob_path
from plantsync.client.context import SyncContext
from plantsync.client.media import is_local_media
from plantsync.client.models import (
    PLANT_MEDIA_FIELDS,
    CareGuideRecord,
    LightMeasurementRecord,
    OutdoorCheckRecord,
    PlantRecord,
    RecordKind,
)
from plantsync.client.state import LocalStore
from plantsync.client.sync.types import (
    OwnerNotFoundError,
    RecordResult,
    SyncOutcome,
    SyncReport,
)
from plantsync.core.status import error_message
from plantsync.core.types import PENDING_STATES, SyncState

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_CONCURRENT = 4


class ReconciliationEngine:
    """Pushes locally mutated records to the remote.

    Usage:
        engine = ReconciliationEngine(store, context)
        outcome = await engine.reconcile()
        if outcome is SyncOutcome.RETRY_LATER:
            ...  # schedule another pass later
    """

    def __init__(
        self,
        store: LocalStore,
        context: SyncContext,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Local store (source of truth).
            context: Session and remote/media capabilities.
            max_concurrent: Maximum records reconciled at the same time.
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._store = store
        self._context = context
        self._max_concurrent = max_concurrent
        self._last_report: SyncReport | None = None

    @property
    def last_report(self) -> SyncReport | None:
        """Report of the last completed pass."""
        return self._last_report

    async def reconcile(self) -> SyncOutcome:
        """Run one reconciliation pass and return its aggregate outcome."""
        report = await self.run_pass()
        return report.outcome

    async def run_pass(self) -> SyncReport:
        """Run one reconciliation pass and return per-record results."""
        report = SyncReport()

        plants = await self._local(self._store.list_plants_by_state, PENDING_STATES)
        checks = await self._local(self._store.list_outdoor_checks_by_state, PENDING_STATES)
        guides = await self._local(self._store.list_care_guides_by_state, PENDING_STATES)
        measurements = await self._local(
            self._store.list_light_measurements_by_state, PENDING_STATES
        )

        if not (plants or checks or guides or measurements):
            logger.debug("Nothing to reconcile")
            report.finished_at = time.time()
            self._last_report = report
            return report

        logger.info(
            "Reconciling %d plants, %d outdoor checks, %d care guides, %d light measurements",
            len(plants),
            len(checks),
            len(guides),
            len(measurements),
        )

        semaphore = asyncio.Semaphore(self._max_concurrent)

        async def bounded(unit: Awaitable[RecordResult]) -> RecordResult:
            async with semaphore:
                return await unit

        units: list[Awaitable[RecordResult]] = [self._reconcile_plant(p) for p in plants]
        units += [self._reconcile_outdoor_check(c) for c in checks]
        units += [self._reconcile_care_guide(g) for g in guides]
        units += [self._reconcile_light_measurement(m) for m in measurements]

        report.results = list(await asyncio.gather(*(bounded(u) for u in units)))
        report.finished_at = time.time()
        self._last_report = report

        logger.info(
            "Reconciliation finished: %d synced, %d failed, %d skipped (%.2fs)",
            len(report.synced),
            len(report.failed),
            len(report.skipped),
            report.elapsed_time,
        )
        return report

    # === Units of work ===

    async def _reconcile_plant(self, plant: PlantRecord) -> RecordResult:
        async def push() -> dict[str, Any]:
            prepared = await self._upload_media_if_needed(plant)
            await self._context.remote.upsert_plant(prepared)
            return {name: getattr(prepared, name) for name, _blob in PLANT_MEDIA_FIELDS}

        return await self._reconcile(RecordKind.PLANT, plant.id, plant.updated_at, push)

    async def _reconcile_outdoor_check(self, check: OutdoorCheckRecord) -> RecordResult:
        async def push() -> dict[str, Any]:
            owner_id = await self._owner_of(check.plant_id)
            await self._context.remote.upsert_outdoor_check(owner_id, check)
            return {}

        return await self._reconcile(RecordKind.OUTDOOR_CHECK, check.id, check.updated_at, push)

    async def _reconcile_care_guide(self, guide: CareGuideRecord) -> RecordResult:
        async def push() -> dict[str, Any]:
            owner_id = await self._owner_of(guide.plant_id)
            await self._context.remote.upsert_care_guide(owner_id, guide)
            return {}

        return await self._reconcile(RecordKind.CARE_GUIDE, guide.plant_id, guide.updated_at, push)

    async def _reconcile_light_measurement(
        self, measurement: LightMeasurementRecord
    ) -> RecordResult:
        async def push() -> dict[str, Any]:
            owner_id = await self._owner_of(measurement.plant_id)
            await self._context.remote.upsert_light_measurement(owner_id, measurement)
            return {}

        return await self._reconcile(
            RecordKind.LIGHT_MEASUREMENT, measurement.id, measurement.updated_at, push
        )

    async def _reconcile(
        self,
        kind: RecordKind,
        record_id: str,
        updated_at: int,
        push: Callable[[], Awaitable[dict[str, Any]]],
    ) -> RecordResult:
        """Run one isolated unit of work and write the resulting status.

        Args:
            kind: Kind of record.
            record_id: Id of the record.
            updated_at: ``updated_at`` read with the candidate set.
            push: Coroutine function pushing the record. Returns the columns
                to persist with the SYNCED status.
        """
        try:
            changes = await push()
        except OwnerNotFoundError as e:
            logger.warning("Skipping %s %s: %s", kind.value, record_id, e)
            return RecordResult(kind, record_id, None, str(e))
        except sqlite3.Error as e:
            logger.exception("Local error while reconciling %s %s", kind.value, record_id)
            return RecordResult(kind, record_id, None, error_message(e))
        except Exception as e:
            return await self._write_failed(kind, record_id, updated_at, e)

        try:
            applied = await self._local(
                self._store.set_sync_state,
                kind,
                record_id,
                SyncState.SYNCED,
                None,
                expected_updated_at=updated_at,
                **changes,
            )
        except sqlite3.Error as e:
            logger.exception("Failed to mark %s %s as synced", kind.value, record_id)
            return RecordResult(kind, record_id, None, error_message(e))

        if not applied:
            logger.info(
                "%s %s changed during sync, keeping local edit", kind.value, record_id
            )
            return RecordResult(kind, record_id, None, "Record changed during sync")

        logger.debug("Synced %s %s", kind.value, record_id)
        return RecordResult(kind, record_id, SyncState.SYNCED)

    async def _write_failed(
        self,
        kind: RecordKind,
        record_id: str,
        updated_at: int,
        error: BaseException,
    ) -> RecordResult:
        message = error_message(error)
        logger.warning("Failed to sync %s %s: %s", kind.value, record_id, message)
        try:
            applied = await self._local(
                self._store.set_sync_state,
                kind,
                record_id,
                SyncState.FAILED,
                message,
                expected_updated_at=updated_at,
            )
        except sqlite3.Error:
            logger.exception("Failed to mark %s %s as failed", kind.value, record_id)
            return RecordResult(kind, record_id, None, message)

        if not applied:
            return RecordResult(kind, record_id, None, message)
        return RecordResult(kind, record_id, SyncState.FAILED, message)

    # === Helpers ===

    async def _upload_media_if_needed(self, plant: PlantRecord) -> PlantRecord:
        """Upload local-only media and return an in-memory copy with remote URLs."""
        changes: dict[str, str] = {}
        for field_name, blob_name in PLANT_MEDIA_FIELDS:
            uri = getattr(plant, field_name)
            if not is_local_media(uri):
                continue
            data = await self._context.media.read(uri)
            path = plant_blob_path(plant.owner_id, plant.id, blob_name)
            changes[field_name] = await self._context.remote.upload_blob(path, data)
            logger.debug("Uploaded %s of plant %s to %s", field_name, plant.id, path)
        if not changes:
            return plant
        return dataclasses.replace(plant, **changes)

    async def _owner_of(self, plant_id: str) -> str:
        plant = await self._local(self._store.get_plant, plant_id)
        if plant is None:
            raise OwnerNotFoundError(f"Plant {plant_id} not found locally")
        return plant.owner_id

    async def _local(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a local store call in a worker thread."""
        return await asyncio.to_thread(func, *args, **kwargs)

