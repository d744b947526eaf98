"""Tests for the reconciliation engine."""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import Callable
from unittest.mock import patch

import pytest

from plantsync.client.api import APIError, RemoteUnavailableError
from plantsync.client.context import SyncContext
from plantsync.client.models import CareGuideRecord, OutdoorCheckRecord, PlantRecord, RecordKind
from plantsync.client.state import LocalStore
from plantsync.client.sync import ReconciliationEngine, SyncOutcome
from plantsync.core.types import SyncState

STORAGE_URL = "https://storage.example/users/owner-1/plants/p1/user.jpg"


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until predicate() is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


class TestEngineCreation:
    """Tests for ReconciliationEngine initialization."""

    def test_rejects_zero_concurrency(self, store: LocalStore, context: SyncContext) -> None:
        """Should require at least one concurrent unit."""
        with pytest.raises(ValueError):
            ReconciliationEngine(store, context, max_concurrent=0)


class TestReconcilePlants:
    """Tests for reconciling plants."""

    @pytest.mark.asyncio
    async def test_nothing_to_do(self, engine, remote) -> None:  # type: ignore[no-untyped-def]
        """An empty candidate set should succeed without remote calls."""
        assert await engine.reconcile() is SyncOutcome.SUCCESS
        assert remote.calls == []
        assert engine.last_report is not None
        assert engine.last_report.results == []

    @pytest.mark.asyncio
    async def test_first_sync_with_local_photo(  # type: ignore[no-untyped-def]
        self, engine, store, remote, media, add_plant
    ) -> None:
        """A new plant with a local photo ends SYNCED with the remote URL."""
        add_plant("p1", common_name="Monstera", user_photo_url="local://tmp/1.jpg")
        media.files["local://tmp/1.jpg"] = b"jpeg"

        outcome = await engine.reconcile()

        assert outcome is SyncOutcome.SUCCESS
        assert remote.blobs["users/owner-1/plants/p1/user.jpg"] == b"jpeg"
        assert remote.plants["p1"].user_photo_url == STORAGE_URL
        plant = store.get_plant("p1")
        assert plant.sync_state is SyncState.SYNCED
        assert plant.user_photo_url == STORAGE_URL
        assert plant.last_sync_error is None
        # Upload happens before the document push
        assert remote.calls.index("upload_blob:users/owner-1/plants/p1/user.jpg") < (
            remote.calls.index("upsert_plant:p1")
        )

    @pytest.mark.asyncio
    async def test_both_media_fields_uploaded(  # type: ignore[no-untyped-def]
        self, engine, store, remote, media, add_plant
    ) -> None:
        """The reference photo is uploaded like the user photo."""
        add_plant("p1", user_photo_url="local://a.jpg", reference_photo_url="local://b.jpg")
        media.files.update({"local://a.jpg": b"a", "local://b.jpg": b"b"})

        assert await engine.reconcile() is SyncOutcome.SUCCESS

        plant = store.get_plant("p1")
        assert plant.reference_photo_url == (
            "https://storage.example/users/owner-1/plants/p1/reference.jpg"
        )

    @pytest.mark.asyncio
    async def test_remote_media_not_uploaded(  # type: ignore[no-untyped-def]
        self, engine, store, remote, add_plant
    ) -> None:
        """Media already remote is pushed as-is."""
        add_plant("p1", user_photo_url="https://cdn.example/1.jpg")

        assert await engine.reconcile() is SyncOutcome.SUCCESS

        assert remote.calls == ["upsert_plant:p1"]
        assert store.get_plant("p1").user_photo_url == "https://cdn.example/1.jpg"

    @pytest.mark.asyncio
    async def test_synced_records_are_not_candidates(  # type: ignore[no-untyped-def]
        self, engine, remote, add_plant
    ) -> None:
        """SYNCED records are left alone."""
        add_plant("p1", sync_state=SyncState.SYNCED)

        assert await engine.reconcile() is SyncOutcome.SUCCESS
        assert remote.calls == []

    @pytest.mark.asyncio
    async def test_failure_is_isolated(  # type: ignore[no-untyped-def]
        self, engine, store, remote, add_plant
    ) -> None:
        """One rejected record is FAILED; the others still sync."""
        add_plant("p1")
        add_plant("p2")
        remote.fail_plants["p2"] = APIError("quota exceeded", 429)

        outcome = await engine.reconcile()

        assert outcome is SyncOutcome.RETRY_LATER
        assert store.get_plant("p1").sync_state is SyncState.SYNCED
        failed = store.get_plant("p2")
        assert failed.sync_state is SyncState.FAILED
        assert failed.last_sync_error == "quota exceeded"
        assert "p2" not in remote.plants

        report = engine.last_report
        assert [r.record_id for r in report.synced] == ["p1"]
        assert [r.record_id for r in report.failed] == ["p2"]

    @pytest.mark.asyncio
    async def test_failed_record_retried_next_pass(  # type: ignore[no-untyped-def]
        self, engine, store, remote, add_plant
    ) -> None:
        """A FAILED record is picked up again and can end SYNCED."""
        add_plant("p1")
        remote.fail_plants["p1"] = RemoteUnavailableError("timeout")
        assert await engine.reconcile() is SyncOutcome.RETRY_LATER
        assert store.get_plant("p1").sync_state is SyncState.FAILED

        remote.fail_plants.clear()

        assert await engine.reconcile() is SyncOutcome.SUCCESS
        plant = store.get_plant("p1")
        assert plant.sync_state is SyncState.SYNCED
        assert plant.last_sync_error is None
        assert remote.calls.count("upsert_plant:p1") == 2

    @pytest.mark.asyncio
    async def test_missing_media_fails_without_push(  # type: ignore[no-untyped-def]
        self, engine, store, remote, add_plant
    ) -> None:
        """A local photo that cannot be read never reaches the remote."""
        add_plant("p1", user_photo_url="local://tmp/gone.jpg")

        assert await engine.reconcile() is SyncOutcome.RETRY_LATER

        plant = store.get_plant("p1")
        assert plant.sync_state is SyncState.FAILED
        assert "gone.jpg" in plant.last_sync_error
        assert plant.user_photo_url == "local://tmp/gone.jpg"
        assert "upsert_plant:p1" not in remote.calls

    @pytest.mark.asyncio
    async def test_upload_failure_fails_without_push(  # type: ignore[no-untyped-def]
        self, engine, store, remote, media, add_plant
    ) -> None:
        """A failed upload leaves the local reference and skips the push."""
        add_plant("p1", user_photo_url="local://tmp/1.jpg")
        media.files["local://tmp/1.jpg"] = b"jpeg"
        remote.fail_uploads = RemoteUnavailableError("storage down")

        assert await engine.reconcile() is SyncOutcome.RETRY_LATER

        plant = store.get_plant("p1")
        assert plant.sync_state is SyncState.FAILED
        assert plant.last_sync_error == "storage down"
        assert plant.user_photo_url == "local://tmp/1.jpg"
        assert remote.plants == {}

    @pytest.mark.asyncio
    async def test_edit_during_push_wins(  # type: ignore[no-untyped-def]
        self, engine, store, remote, add_plant
    ) -> None:
        """A local edit made while the record is pushed stays PENDING."""
        add_plant("p1", updated_at=1000)
        remote.gate = asyncio.Event()

        task = asyncio.create_task(engine.reconcile())
        await wait_until(lambda: "upsert_plant:p1" in remote.calls)
        add_plant("p1", common_name="Edited", updated_at=2000)
        remote.gate.set()
        outcome = await task

        assert outcome is SyncOutcome.RETRY_LATER
        plant = store.get_plant("p1")
        assert plant.common_name == "Edited"
        assert plant.sync_state is SyncState.PENDING
        assert engine.last_report.skipped[0].record_id == "p1"

    @pytest.mark.asyncio
    async def test_local_error_keeps_prior_state(  # type: ignore[no-untyped-def]
        self, engine, store, remote, add_plant
    ) -> None:
        """A local storage error skips the record without marking it."""
        add_plant("p1")

        with patch.object(
            store, "set_sync_state", side_effect=sqlite3.OperationalError("disk I/O error")
        ):
            outcome = await engine.reconcile()

        assert outcome is SyncOutcome.RETRY_LATER
        plant = store.get_plant("p1")
        assert plant.sync_state is SyncState.PENDING
        assert plant.last_sync_error is None
        assert engine.last_report.skipped[0].error == "disk I/O error"

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(  # type: ignore[no-untyped-def]
        self, store, context, remote, add_plant
    ) -> None:
        """No more than max_concurrent records are pushed at once."""
        for i in range(5):
            add_plant(f"p{i}")
        engine = ReconciliationEngine(store, context, max_concurrent=2)
        remote.gate = asyncio.Event()

        task = asyncio.create_task(engine.reconcile())
        await wait_until(lambda: len(remote.calls) == 2)
        await asyncio.sleep(0.05)
        assert len(remote.calls) == 2

        remote.gate.set()
        assert await task is SyncOutcome.SUCCESS
        assert len(remote.plants) == 5


class TestReconcileChildren:
    """Tests for reconciling the records attached to a plant."""

    @pytest.mark.asyncio
    async def test_children_synced(  # type: ignore[no-untyped-def]
        self, engine, store, remote, add_plant, outdoor_check_factory
    ) -> None:
        """Outdoor checks and care guides are pushed under the plant's owner."""
        add_plant("p1", sync_state=SyncState.SYNCED)
        store.upsert_outdoor_check(outdoor_check_factory("c1", "p1"))
        store.upsert_care_guide(CareGuideRecord(plant_id="p1", watering_info="Weekly"))

        assert await engine.reconcile() is SyncOutcome.SUCCESS

        assert "c1" in remote.outdoor_checks
        assert remote.care_guides["p1"].watering_info == "Weekly"
        assert store.get_outdoor_check("c1").sync_state is SyncState.SYNCED
        assert store.get_care_guide("p1").sync_state is SyncState.SYNCED

    @pytest.mark.asyncio
    async def test_light_measurement_synced(  # type: ignore[no-untyped-def]
        self, engine, store, remote, add_plant, light_measurement_factory
    ) -> None:
        """A pending light measurement is pushed and marked SYNCED."""
        add_plant("p1", sync_state=SyncState.SYNCED)
        store.upsert_light_measurement(light_measurement_factory("l1", "p1", lux_value=640.0))

        report = await engine.run_pass()

        assert report.outcome is SyncOutcome.SUCCESS
        assert remote.calls == ["upsert_light_measurement:l1"]
        assert remote.light_measurements["l1"].lux_value == 640.0
        assert [r.kind for r in report.synced] == [RecordKind.LIGHT_MEASUREMENT]
        assert store.get_light_measurement("l1").sync_state is SyncState.SYNCED

    @pytest.mark.asyncio
    async def test_light_measurement_failure_is_recorded(  # type: ignore[no-untyped-def]
        self, engine, store, remote, add_plant, light_measurement_factory
    ) -> None:
        """A rejected measurement is marked FAILED without touching the plant."""
        add_plant("p1", sync_state=SyncState.SYNCED)
        store.upsert_light_measurement(light_measurement_factory("l1", "p1"))

        with patch.object(
            remote, "upsert_light_measurement", side_effect=APIError("Forbidden", 403)
        ):
            outcome = await engine.reconcile()

        assert outcome is SyncOutcome.RETRY_LATER
        measurement = store.get_light_measurement("l1")
        assert measurement.sync_state is SyncState.FAILED
        assert "Forbidden" in measurement.last_sync_error
        assert store.get_plant("p1").sync_state is SyncState.SYNCED

    @pytest.mark.asyncio
    async def test_child_without_local_plant_is_skipped(  # type: ignore[no-untyped-def]
        self, engine, store, remote, add_plant, outdoor_check_factory
    ) -> None:
        """A child whose plant cannot be resolved is skipped, not failed."""
        add_plant("p1", sync_state=SyncState.SYNCED)
        check: OutdoorCheckRecord = outdoor_check_factory("c1", "p1")
        store.upsert_outdoor_check(check)

        with patch.object(store, "get_plant", return_value=None):
            outcome = await engine.reconcile()

        assert outcome is SyncOutcome.RETRY_LATER
        assert store.get_outdoor_check("c1").sync_state is SyncState.PENDING
        result = engine.last_report.skipped[0]
        assert result.kind is RecordKind.OUTDOOR_CHECK
        assert remote.outdoor_checks == {}


class TestFirstSyncScenario:
    """End-to-end: plant created offline, synced once online."""

    @pytest.mark.asyncio
    async def test_offline_then_online(  # type: ignore[no-untyped-def]
        self, engine, repository, store, remote, media
    ) -> None:
        """Saved PENDING offline, SYNCED with a remote photo URL after one pass."""
        media.files["local://tmp/1.jpg"] = b"jpeg"
        saved = await repository.upsert_plant(PlantRecord(
            id="p1", owner_id="", common_name="Monstera", user_photo_url="local://tmp/1.jpg",
        ))
        assert saved.sync_state is SyncState.PENDING
        assert remote.calls == []

        assert await engine.reconcile() is SyncOutcome.SUCCESS

        plant = store.get_plant("p1")
        assert plant.sync_state is SyncState.SYNCED
        assert plant.user_photo_url == STORAGE_URL
        assert remote.plants["p1"].common_name == "Monstera"
