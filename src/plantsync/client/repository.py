"""Repository facade over local storage and background sync.

This module provides:
- PlantRepository: The API the application uses to read and write plants

Local storage is the source of truth. Writes land locally with state
PENDING and only request a background sync pass; nothing here waits for
the remote, except the explicit hydration path (refresh_from_remote) and
the best-effort remote delete.

Conflict policy:
    | Path                  | Winner                                     |
    |-----------------------|--------------------------------------------|
    | upsert_* (day-to-day) | Local (pushed on the next pass)            |
    | refresh_from_remote   | Remote (overwrites local, marked SYNCED)   |
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import sqlite3
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any, TypeVar

from plantsync.client.models import (
    CARE_GUIDE_FIELDS,
    CareGuideRecord,
    LightMeasurementRecord,
    OutdoorCheckRecord,
    OwnerRecord,
    PlantRecord,
    RecordKind,
    new_id,
    next_updated_at,
    now_ms,
)
from plantsync.core.status import mark_pending

if TYPE_CHECKING:
    from plantsync.client.context import SyncContext
    from plantsync.client.state import LocalStore
    from plantsync.client.sync.scheduler import SyncJob

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RepositoryError(Exception):
    """Base exception for repository errors."""


class PlantNotFoundError(RepositoryError, LookupError):
    """The referenced plant does not exist locally."""


class PlantRepository:
    """Coordinates local writes, sync scheduling and live reads.

    Usage:
        repo = PlantRepository(store, context, job)
        plant = await repo.upsert_plant(PlantRecord(id="", owner_id=..., common_name="Monstera"))
        async for plants in repo.observe_plants(context.owner_id):
            render(plants)
    """

    def __init__(
        self,
        store: LocalStore,
        context: SyncContext,
        job: SyncJob | None = None,
    ) -> None:
        """Initialize the repository.

        Args:
            store: Local store.
            context: Session and remote capability.
            job: Background sync job. Without one, writes stay PENDING
                until a pass is run explicitly.
        """
        self._store = store
        self._context = context
        self._job = job

    # === Plants ===

    async def get_plant(self, plant_id: str) -> PlantRecord | None:
        """Get a plant by id."""
        return await self._local(self._store.get_plant, plant_id)

    async def get_plants(self, owner_id: str | None = None) -> list[PlantRecord]:
        """List an owner's plants (default: current owner), newest first."""
        return await self._local(self._store.list_plants, owner_id or self._context.owner_id)

    async def upsert_plant(self, plant: PlantRecord) -> PlantRecord:
        """Create or update a plant locally and request a sync pass.

        An empty ``id`` gets a fresh one and an empty ``owner_id`` defaults
        to the current owner.

        Returns:
            The stored record (state PENDING).
        """
        owner_id = plant.owner_id or self._context.owner_id
        await self._ensure_owner(owner_id)

        existing = await self.get_plant(plant.id) if plant.id else None
        now = now_ms()
        record = mark_pending(dataclasses.replace(
            plant,
            id=plant.id or new_id(),
            owner_id=owner_id,
            created_at=existing.created_at if existing else (plant.created_at or now),
            updated_at=next_updated_at(existing.updated_at if existing else None),
        ))

        await self._local(self._store.upsert_plant, record)
        logger.debug("Saved plant %s locally", record.id)
        self._request_sync()
        return record

    async def delete_plant(self, plant_id: str) -> bool:
        """Delete a plant locally, then best-effort on the remote.

        The local delete is authoritative: remote failures are logged and
        never surfaced.

        Returns:
            True if the plant existed locally.
        """
        plant = await self.get_plant(plant_id)
        if plant is None:
            return False

        await self._local(self._store.delete_plant, plant_id)
        logger.info("Deleted plant %s locally", plant_id)

        try:
            await self._context.remote.delete_plant(plant.owner_id, plant_id)
        except Exception as e:
            logger.warning("Remote delete of plant %s failed: %s", plant_id, e)
        return True

    async def observe_plants(self, owner_id: str | None = None) -> AsyncIterator[list[PlantRecord]]:
        """Yield the owner's plant list now and after every local change.

        Driven by local storage only. Consecutive identical lists are not
        repeated.
        """
        owner_id = owner_id or self._context.owner_id
        async for plants in self._observe(RecordKind.PLANT, self._store.list_plants, owner_id):
            yield plants

    # === Outdoor checks ===

    async def get_outdoor_checks(self, plant_id: str) -> list[OutdoorCheckRecord]:
        """List a plant's outdoor checks, newest first."""
        return await self._local(self._store.list_outdoor_checks, plant_id)

    async def upsert_outdoor_check(self, check: OutdoorCheckRecord) -> OutdoorCheckRecord:
        """Create or update an outdoor check locally and request a sync pass.

        Raises:
            PlantNotFoundError: If the plant does not exist locally.
        """
        if await self.get_plant(check.plant_id) is None:
            raise PlantNotFoundError(f"Plant not found: {check.plant_id}")

        existing = (
            await self._local(self._store.get_outdoor_check, check.id) if check.id else None
        )
        now = now_ms()
        record = mark_pending(dataclasses.replace(
            check,
            id=check.id or new_id(),
            checked_at=check.checked_at or now,
            created_at=existing.created_at if existing else (check.created_at or now),
            updated_at=next_updated_at(existing.updated_at if existing else None),
        ))

        await self._local(self._store.upsert_outdoor_check, record)
        self._request_sync()
        return record

    # === Light measurements ===

    async def get_light_measurements(self, plant_id: str) -> list[LightMeasurementRecord]:
        """List a plant's light measurements, newest first."""
        return await self._local(self._store.list_light_measurements, plant_id)

    async def upsert_light_measurement(
        self, measurement: LightMeasurementRecord
    ) -> LightMeasurementRecord:
        """Create or update a light measurement locally and request a sync pass.

        Raises:
            PlantNotFoundError: If the plant does not exist locally.
        """
        if await self.get_plant(measurement.plant_id) is None:
            raise PlantNotFoundError(f"Plant not found: {measurement.plant_id}")

        existing = (
            await self._local(self._store.get_light_measurement, measurement.id)
            if measurement.id
            else None
        )
        now = now_ms()
        record = mark_pending(dataclasses.replace(
            measurement,
            id=measurement.id or new_id(),
            measured_at=measurement.measured_at or now,
            created_at=existing.created_at if existing else (measurement.created_at or now),
            updated_at=next_updated_at(existing.updated_at if existing else None),
        ))

        await self._local(self._store.upsert_light_measurement, record)
        self._request_sync()
        return record

    async def observe_light_measurements(
        self, plant_id: str
    ) -> AsyncIterator[list[LightMeasurementRecord]]:
        """Yield a plant's light measurements now and after every local change."""
        async for measurements in self._observe(
            RecordKind.LIGHT_MEASUREMENT, self._store.list_light_measurements, plant_id
        ):
            yield measurements

    # === Care guides ===

    async def get_care_guide(
        self, plant_id: str, force_refresh: bool = False
    ) -> CareGuideRecord | None:
        """Get a plant's care guide.

        The local copy is returned unless missing or ``force_refresh`` is
        set; then the remote copy is fetched and stored SYNCED. A forced
        refresh that finds no remote guide drops the local one. If the
        remote cannot be reached the local copy (if any) is returned.
        """
        local = await self._local(self._store.get_care_guide, plant_id)
        if local is not None and not force_refresh:
            return local

        plant = await self.get_plant(plant_id)
        if plant is None:
            return None

        try:
            remote = await self._context.remote.fetch_care_guide(plant.owner_id, plant_id)
        except Exception as e:
            logger.warning("Failed to fetch care guide of %s: %s", plant_id, e)
            return local

        if remote is not None:
            await self._local(self._store.upsert_care_guide, remote)
            return remote

        if force_refresh and local is not None:
            await self._local(self._store.delete_care_guide, plant_id)
        return None

    async def save_care_guide(
        self, plant_id: str, values: Mapping[str, str | None]
    ) -> CareGuideRecord | None:
        """Store a care guide locally and request a sync pass.

        Args:
            plant_id: Plant the guide belongs to.
            values: Guide sections, keyed by CARE_GUIDE_FIELDS names.

        Returns:
            The stored guide, or None if the plant does not exist.

        Raises:
            ValueError: If ``values`` contains unknown sections.
        """
        unknown = set(values) - set(CARE_GUIDE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown care guide fields: {', '.join(sorted(unknown))}")

        if await self.get_plant(plant_id) is None:
            return None

        existing = await self._local(self._store.get_care_guide, plant_id)
        now = now_ms()
        guide = mark_pending(CareGuideRecord(
            plant_id=plant_id,
            fetched_at=now,
            created_at=existing.created_at if existing else now,
            updated_at=next_updated_at(existing.updated_at if existing else None),
            **{name: values.get(name) for name in CARE_GUIDE_FIELDS},
        ))

        await self._local(self._store.upsert_care_guide, guide)
        self._request_sync()
        return guide

    # === Hydration ===

    async def refresh_from_remote(self, owner_id: str | None = None) -> int:
        """Pull the owner's remote records into local storage.

        Remote wins on this path: merged records overwrite local ones and
        are marked SYNCED. A collection that cannot be fetched is skipped;
        children whose plant is not stored locally are skipped.

        Returns:
            Number of records merged.
        """
        owner_id = owner_id or self._context.owner_id
        await self._ensure_owner(owner_id)
        remote = self._context.remote
        merged = 0

        for plant in await self._fetch("plants", remote.fetch_plants(owner_id)):
            await self._local(self._store.upsert_plant, plant)
            merged += 1

        for guide in await self._fetch("care guides", remote.fetch_care_guides(owner_id)):
            merged += await self._merge_child(self._store.upsert_care_guide, guide)

        for check in await self._fetch("outdoor checks", remote.fetch_outdoor_checks(owner_id)):
            merged += await self._merge_child(self._store.upsert_outdoor_check, check)

        measurements = await self._fetch(
            "light measurements", remote.fetch_light_measurements(owner_id)
        )
        for measurement in measurements:
            merged += await self._merge_child(self._store.upsert_light_measurement, measurement)

        logger.info("Merged %d remote records for owner %s", merged, owner_id)
        return merged

    async def _fetch(self, what: str, fetch: Awaitable[list[T]]) -> list[T]:
        try:
            return await fetch
        except Exception as e:
            logger.warning("Failed to fetch remote %s: %s", what, e)
            return []

    async def _merge_child(self, write: Callable[[Any], None], record: Any) -> int:
        try:
            await self._local(write, record)
        except sqlite3.IntegrityError:
            logger.debug("Skipping remote %s: plant %s not stored locally",
                         type(record).__name__, record.plant_id)
            return 0
        return 1

    # === Helpers ===

    async def _observe(
        self, kind: RecordKind, load: Callable[[str], list[T]], key: str
    ) -> AsyncIterator[list[T]]:
        """Yield ``load(key)`` now and after every local change to ``kind``.

        Consecutive identical lists are not repeated.
        """
        loop = asyncio.get_running_loop()
        changed = asyncio.Event()

        def on_change(changed_kind: RecordKind) -> None:
            if changed_kind is kind:
                loop.call_soon_threadsafe(changed.set)

        unsubscribe = self._store.subscribe(on_change)
        try:
            last: list[T] | None = None
            while True:
                changed.clear()
                records = await self._local(load, key)
                if records != last:
                    last = records
                    yield records
                await changed.wait()
        finally:
            unsubscribe()

    async def _ensure_owner(self, owner_id: str) -> None:
        """Create a minimal local owner row if none exists."""
        if not await self._local(self._store.owner_exists, owner_id):
            await self._local(self._store.upsert_owner, OwnerRecord.stub(owner_id))
            logger.debug("Created local owner stub %s", owner_id)

    def _request_sync(self) -> None:
        if self._job is None:
            logger.debug("No sync job attached, record stays PENDING")
            return
        self._job.request()

    async def _local(self, func: Callable[..., T], *args: Any) -> T:
        """Run a local store call in a worker thread."""
        return await asyncio.to_thread(func, *args)
