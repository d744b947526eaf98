"""Shared fixtures: in-process fakes for the remote, media and network."""

from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from plantsync.client.context import SyncContext
from plantsync.client.media import MediaNotFoundError, is_local_media
from plantsync.client.models import (
    PLANT_MEDIA_FIELDS,
    CareGuideRecord,
    LightMeasurementRecord,
    OutdoorCheckRecord,
    OwnerRecord,
    PlantRecord,
)
from plantsync.client.repository import PlantRepository
from plantsync.client.state import LocalStore
from plantsync.client.sync.engine import ReconciliationEngine
from plantsync.core.types import SyncState

OWNER_ID = "owner-1"


class FakeRemote:
    """In-memory RemoteStore recording every call."""

    def __init__(self) -> None:
        self.available = True
        self.plants: dict[str, PlantRecord] = {}
        self.outdoor_checks: dict[str, OutdoorCheckRecord] = {}
        self.care_guides: dict[str, CareGuideRecord] = {}
        self.light_measurements: dict[str, LightMeasurementRecord] = {}
        self.blobs: dict[str, bytes] = {}
        self.calls: list[str] = []

        # Failure injection
        self.fail_plants: dict[str, Exception] = {}
        self.fail_uploads: Exception | None = None
        self.fail_fetch: Exception | None = None
        self.fail_delete: Exception | None = None

        # When set, upsert_plant blocks until the event is set
        self.gate: asyncio.Event | None = None

    async def health_check(self) -> bool:
        return self.available

    async def upsert_plant(self, plant: PlantRecord) -> None:
        self.calls.append(f"upsert_plant:{plant.id}")
        if self.gate is not None:
            await self.gate.wait()
        if plant.id in self.fail_plants:
            raise self.fail_plants[plant.id]
        for field_name, _blob in PLANT_MEDIA_FIELDS:
            if is_local_media(getattr(plant, field_name)):
                raise ValueError(f"local media pushed: {getattr(plant, field_name)}")
        self.plants[plant.id] = plant

    async def fetch_plants(self, owner_id: str) -> list[PlantRecord]:
        self.calls.append(f"fetch_plants:{owner_id}")
        if self.fail_fetch is not None:
            raise self.fail_fetch
        return [
            dataclasses.replace(p, sync_state=SyncState.SYNCED, last_sync_error=None)
            for p in self.plants.values()
            if p.owner_id == owner_id
        ]

    async def delete_plant(self, owner_id: str, plant_id: str) -> None:
        self.calls.append(f"delete_plant:{plant_id}")
        if self.fail_delete is not None:
            raise self.fail_delete
        self.plants.pop(plant_id, None)
        self.care_guides.pop(plant_id, None)

    async def upsert_outdoor_check(self, owner_id: str, check: OutdoorCheckRecord) -> None:
        self.calls.append(f"upsert_outdoor_check:{check.id}")
        self.outdoor_checks[check.id] = check

    async def fetch_outdoor_checks(self, owner_id: str) -> list[OutdoorCheckRecord]:
        self.calls.append(f"fetch_outdoor_checks:{owner_id}")
        if self.fail_fetch is not None:
            raise self.fail_fetch
        return [
            dataclasses.replace(c, sync_state=SyncState.SYNCED)
            for c in self.outdoor_checks.values()
        ]

    async def upsert_care_guide(self, owner_id: str, guide: CareGuideRecord) -> None:
        self.calls.append(f"upsert_care_guide:{guide.plant_id}")
        self.care_guides[guide.plant_id] = guide

    async def fetch_care_guides(self, owner_id: str) -> list[CareGuideRecord]:
        self.calls.append(f"fetch_care_guides:{owner_id}")
        if self.fail_fetch is not None:
            raise self.fail_fetch
        return [
            dataclasses.replace(g, sync_state=SyncState.SYNCED)
            for g in self.care_guides.values()
        ]

    async def fetch_care_guide(self, owner_id: str, plant_id: str) -> CareGuideRecord | None:
        self.calls.append(f"fetch_care_guide:{plant_id}")
        if self.fail_fetch is not None:
            raise self.fail_fetch
        guide = self.care_guides.get(plant_id)
        return dataclasses.replace(guide, sync_state=SyncState.SYNCED) if guide else None

    async def upsert_light_measurement(
        self, owner_id: str, measurement: LightMeasurementRecord
    ) -> None:
        self.calls.append(f"upsert_light_measurement:{measurement.id}")
        self.light_measurements[measurement.id] = measurement

    async def fetch_light_measurements(self, owner_id: str) -> list[LightMeasurementRecord]:
        self.calls.append(f"fetch_light_measurements:{owner_id}")
        if self.fail_fetch is not None:
            raise self.fail_fetch
        return [
            dataclasses.replace(m, sync_state=SyncState.SYNCED)
            for m in self.light_measurements.values()
        ]

    async def upload_blob(self, path: str, data: bytes, content_type: str = "image/jpeg") -> str:
        self.calls.append(f"upload_blob:{path}")
        if self.fail_uploads is not None:
            raise self.fail_uploads
        self.blobs[path] = data
        return f"https://storage.example/{path}"

    async def aclose(self) -> None:
        pass


class FakeMedia:
    """MediaReader serving bytes from a dict."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}

    async def read(self, uri: str) -> bytes:
        if uri not in self.files:
            raise MediaNotFoundError(f"Media not found: {uri}")
        return self.files[uri]


class FakeNetwork:
    """NetworkMonitor whose availability is toggled by the test."""

    def __init__(self, available: bool = True) -> None:
        self.available = available
        self.wait_calls = 0

    async def is_available(self) -> bool:
        return self.available

    async def wait_until_available(self) -> None:
        self.wait_calls += 1
        while not self.available:
            await asyncio.sleep(0.01)


@pytest.fixture
def remote() -> FakeRemote:
    """Fake remote store."""
    return FakeRemote()


@pytest.fixture
def media() -> FakeMedia:
    """Fake media reader."""
    return FakeMedia()


@pytest.fixture
def network() -> FakeNetwork:
    """Fake network monitor (available)."""
    return FakeNetwork()


@pytest.fixture
def store(tmp_path: Path) -> Generator[LocalStore, None, None]:
    """Local store in a temporary directory."""
    local_store = LocalStore(tmp_path / "plantsync.db")
    yield local_store
    local_store.close()


@pytest.fixture
def context(remote: FakeRemote, media: FakeMedia) -> SyncContext:
    """Sync context wired to the fakes."""
    return SyncContext(owner_id=OWNER_ID, auth_token="token", remote=remote, media=media)


@pytest.fixture
def engine(store: LocalStore, context: SyncContext) -> ReconciliationEngine:
    """Reconciliation engine over the local store and fakes."""
    return ReconciliationEngine(store, context)


@pytest.fixture
def repository(store: LocalStore, context: SyncContext) -> PlantRepository:
    """Repository without a sync job."""
    return PlantRepository(store, context)


@pytest.fixture
def add_plant(store: LocalStore) -> Callable[..., PlantRecord]:
    """Insert a plant directly into the store (owner stub included)."""

    def _add(plant_id: str = "p1", **fields: Any) -> PlantRecord:
        owner_id = fields.pop("owner_id", OWNER_ID)
        if not store.owner_exists(owner_id):
            store.upsert_owner(OwnerRecord.stub(owner_id))
        values: dict[str, Any] = {
            "common_name": "Monstera",
            "created_at": 1000,
            "updated_at": 1000,
        }
        values.update(fields)
        plant = PlantRecord(id=plant_id, owner_id=owner_id, **values)
        store.upsert_plant(plant)
        return plant

    return _add


def make_outdoor_check(check_id: str = "c1", plant_id: str = "p1", **fields: Any) -> OutdoorCheckRecord:
    """Build an outdoor check with plausible weather values."""
    values: dict[str, Any] = {
        "latitude": 48.85,
        "longitude": 2.35,
        "temp_c": 21.0,
        "feels_like_c": 20.5,
        "humidity_percent": 55,
        "wind_kmh": 8.0,
        "verdict": "OK",
        "verdict_color": "green",
        "analysis": "Mild and calm.",
        "checked_at": 2000,
        "created_at": 2000,
        "updated_at": 2000,
    }
    values.update(fields)
    return OutdoorCheckRecord(id=check_id, plant_id=plant_id, **values)


@pytest.fixture
def outdoor_check_factory() -> Callable[..., OutdoorCheckRecord]:
    """Factory for outdoor check records."""
    return make_outdoor_check


def make_light_measurement(
    measurement_id: str = "l1", plant_id: str = "p1", **fields: Any
) -> LightMeasurementRecord:
    """Build a light measurement for a bright spot."""
    values: dict[str, Any] = {
        "lux_value": 12000.0,
        "assessment_label": "Bright Indirect",
        "assessment_level": "good",
        "ideal_min_lux": 10000.0,
        "ideal_max_lux": 20000.0,
        "adequacy_percent": 100,
        "time_of_day": "midday",
        "measured_at": 3000,
        "created_at": 3000,
        "updated_at": 3000,
    }
    values.update(fields)
    return LightMeasurementRecord(id=measurement_id, plant_id=plant_id, **values)


@pytest.fixture
def light_measurement_factory() -> Callable[..., LightMeasurementRecord]:
    """Factory for light measurement records."""
    return make_light_measurement
