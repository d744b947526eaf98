"""Local store for the sync client.

This module provides:
- LocalStore: SQLite-based durable storage, the source of truth on device

Architecture:
    One table per entity. Plants reference their owner and children
    (outdoor checks, care guides, light measurements) reference their
    plant, both with ON DELETE CASCADE. Every syncable table carries
    ``sync_state`` and ``last_sync_error`` columns.

    Writes never use INSERT OR REPLACE: SQLite implements it as
    delete + insert, which would fire the cascade and wipe children.

    Change listeners are notified after every committed write so callers
    can build live views on top of the store.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from plantsync.client.models import (
    CareGuideRecord,
    LightMeasurementRecord,
    OutdoorCheckRecord,
    OwnerRecord,
    PlantRecord,
    RecordKind,
)
from plantsync.core.types import SyncState

logger = logging.getLogger(__name__)

ChangeListener = Callable[[RecordKind], None]

# Syncable tables: kind -> (table, key column)
_TABLES: dict[RecordKind, tuple[str, str]] = {
    RecordKind.PLANT: ("plants", "id"),
    RecordKind.OUTDOOR_CHECK: ("outdoor_checks", "id"),
    RecordKind.CARE_GUIDE: ("care_guides", "plant_id"),
    RecordKind.LIGHT_MEASUREMENT: ("light_measurements", "id"),
}

_ALL_KINDS = tuple(_TABLES)


class LocalStore:
    """SQLite-based local store.

    All methods are synchronous and thread-safe. Async callers run them in a
    worker thread (``asyncio.to_thread``).
    """

    def __init__(self, db_path: Path | str) -> None:
        """Initialize the local database.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self._db_path = str(db_path)
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        # Lock for thread-safe database access
        self._lock = threading.RLock()
        self._listeners: list[ChangeListener] = []

        self._conn = sqlite3.connect(
            self._db_path,
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
        )
        self._conn.row_factory = sqlite3.Row

        # Enable WAL mode for better concurrency
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        self._create_tables()

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS owners (
                id TEXT PRIMARY KEY,
                email TEXT NOT NULL,
                display_name TEXT,
                profile_photo_url TEXT,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS plants (
                id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL REFERENCES owners(id) ON DELETE CASCADE,
                common_name TEXT NOT NULL,
                scientific_name TEXT,
                nickname TEXT,
                location TEXT,
                user_photo_url TEXT NOT NULL DEFAULT '',
                reference_photo_url TEXT,
                added_method TEXT NOT NULL,
                notes TEXT,
                acquired_date INTEGER,
                watering_frequency TEXT,
                light_requirements TEXT,
                health_status TEXT,
                is_analyzed INTEGER NOT NULL DEFAULT 0,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL,
                sync_state TEXT NOT NULL DEFAULT 'PENDING',
                last_sync_error TEXT
            );
            CREATE INDEX IF NOT EXISTS idx_plants_owner ON plants(owner_id);
            CREATE INDEX IF NOT EXISTS idx_plants_sync_state ON plants(sync_state);

            CREATE TABLE IF NOT EXISTS outdoor_checks (
                id TEXT PRIMARY KEY,
                plant_id TEXT NOT NULL REFERENCES plants(id) ON DELETE CASCADE,
                city_name TEXT,
                latitude REAL NOT NULL,
                longitude REAL NOT NULL,
                temp_c REAL NOT NULL,
                feels_like_c REAL NOT NULL,
                humidity_percent INTEGER NOT NULL,
                wind_kmh REAL NOT NULL,
                uv_index REAL,
                min_temp_next_24h_c REAL,
                weather_description TEXT,
                verdict TEXT NOT NULL,
                verdict_color TEXT NOT NULL,
                analysis TEXT NOT NULL,
                warnings_json TEXT NOT NULL DEFAULT '[]',
                recommendations_json TEXT NOT NULL DEFAULT '[]',
                checked_at INTEGER NOT NULL,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL,
                sync_state TEXT NOT NULL DEFAULT 'PENDING',
                last_sync_error TEXT
            );
            CREATE INDEX IF NOT EXISTS idx_outdoor_checks_plant ON outdoor_checks(plant_id);

            CREATE TABLE IF NOT EXISTS care_guides (
                plant_id TEXT PRIMARY KEY REFERENCES plants(id) ON DELETE CASCADE,
                watering_info TEXT,
                light_info TEXT,
                temperature_info TEXT,
                humidity_info TEXT,
                soil_info TEXT,
                fertilization_info TEXT,
                pruning_info TEXT,
                common_issues TEXT,
                seasonal_tips TEXT,
                fetched_at INTEGER NOT NULL,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL,
                sync_state TEXT NOT NULL DEFAULT 'PENDING',
                last_sync_error TEXT
            );

            CREATE TABLE IF NOT EXISTS light_measurements (
                id TEXT PRIMARY KEY,
                plant_id TEXT NOT NULL REFERENCES plants(id) ON DELETE CASCADE,
                lux_value REAL NOT NULL,
                assessment_label TEXT NOT NULL,
                assessment_level TEXT NOT NULL,
                ideal_min_lux REAL,
                ideal_max_lux REAL,
                ideal_description TEXT,
                adequacy_percent INTEGER,
                recommendations TEXT,
                time_of_day TEXT,
                measured_at INTEGER NOT NULL,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL,
                sync_state TEXT NOT NULL DEFAULT 'PENDING',
                last_sync_error TEXT
            );
            CREATE INDEX IF NOT EXISTS idx_light_measurements_plant
                ON light_measurements(plant_id);
        """)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # === Change notification ===

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a listener called after every committed write.

        Listeners run on the writing thread and must not block.

        Returns:
            Function that removes the listener.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, *kinds: RecordKind) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for kind in kinds:
            for listener in listeners:
                try:
                    listener(kind)
                except Exception:
                    logger.exception("Store change listener failed")

    # === Helpers ===

    def _upsert(self, table: str, key: str, values: dict[str, Any]) -> None:
        columns = list(values)
        placeholders = ", ".join("?" for _ in columns)
        updates = ", ".join(f"{c} = excluded.{c}" for c in columns if c != key)
        with self._lock:
            self._conn.execute(
                f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) "
                f"ON CONFLICT({key}) DO UPDATE SET {updates}",
                [values[c] for c in columns],
            )

    def _fetch_one(self, sql: str, params: Iterable[Any]) -> sqlite3.Row | None:
        with self._lock:
            row: sqlite3.Row | None = self._conn.execute(sql, tuple(params)).fetchone()
        return row

    def _fetch_all(self, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
        with self._lock:
            rows = self._conn.execute(sql, tuple(params)).fetchall()
        return rows

    # === Owners ===

    def get_owner(self, owner_id: str) -> OwnerRecord | None:
        """Get an owner by id."""
        row = self._fetch_one("SELECT * FROM owners WHERE id = ?", (owner_id,))
        return OwnerRecord.from_row(row) if row else None

    def owner_exists(self, owner_id: str) -> bool:
        """Check whether an owner row exists."""
        row = self._fetch_one("SELECT 1 FROM owners WHERE id = ?", (owner_id,))
        return row is not None

    def upsert_owner(self, owner: OwnerRecord) -> None:
        """Insert or update an owner."""
        self._upsert("owners", "id", {
            "id": owner.id,
            "email": owner.email,
            "display_name": owner.display_name,
            "profile_photo_url": owner.profile_photo_url,
            "created_at": owner.created_at,
            "updated_at": owner.updated_at,
        })

    def delete_owner(self, owner_id: str) -> bool:
        """Delete an owner and, by cascade, all of its records."""
        with self._lock:
            cursor = self._conn.execute("DELETE FROM owners WHERE id = ?", (owner_id,))
        deleted = cursor.rowcount > 0
        if deleted:
            self._notify(*_ALL_KINDS)
        return deleted

    # === Plants ===

    def get_plant(self, plant_id: str) -> PlantRecord | None:
        """Get a plant by id."""
        row = self._fetch_one("SELECT * FROM plants WHERE id = ?", (plant_id,))
        return PlantRecord.from_row(row) if row else None

    def list_plants(self, owner_id: str) -> list[PlantRecord]:
        """List an owner's plants, newest first."""
        rows = self._fetch_all(
            "SELECT * FROM plants WHERE owner_id = ? ORDER BY created_at DESC, id",
            (owner_id,),
        )
        return [PlantRecord.from_row(row) for row in rows]

    def list_plants_by_state(self, states: Iterable[SyncState]) -> list[PlantRecord]:
        """List plants of every owner whose sync state is in ``states``."""
        rows = self._query_by_state("plants", states)
        return [PlantRecord.from_row(row) for row in rows]

    def upsert_plant(self, plant: PlantRecord) -> None:
        """Insert or fully replace a plant (children are kept)."""
        self._upsert("plants", "id", {
            "id": plant.id,
            "owner_id": plant.owner_id,
            "common_name": plant.common_name,
            "scientific_name": plant.scientific_name,
            "nickname": plant.nickname,
            "location": plant.location,
            "user_photo_url": plant.user_photo_url,
            "reference_photo_url": plant.reference_photo_url,
            "added_method": plant.added_method,
            "notes": plant.notes,
            "acquired_date": plant.acquired_date,
            "watering_frequency": plant.watering_frequency,
            "light_requirements": plant.light_requirements,
            "health_status": plant.health_status,
            "is_analyzed": int(plant.is_analyzed),
            "created_at": plant.created_at,
            "updated_at": plant.updated_at,
            "sync_state": plant.sync_state.value,
            "last_sync_error": plant.last_sync_error,
        })
        self._notify(RecordKind.PLANT)

    def delete_plant(self, plant_id: str) -> bool:
        """Delete a plant and, by cascade, every record attached to it."""
        with self._lock:
            cursor = self._conn.execute("DELETE FROM plants WHERE id = ?", (plant_id,))
        deleted = cursor.rowcount > 0
        if deleted:
            self._notify(*_ALL_KINDS)
        return deleted

    # === Outdoor checks ===

    def get_outdoor_check(self, check_id: str) -> OutdoorCheckRecord | None:
        """Get an outdoor check by id."""
        row = self._fetch_one("SELECT * FROM outdoor_checks WHERE id = ?", (check_id,))
        return OutdoorCheckRecord.from_row(row) if row else None

    def list_outdoor_checks(self, plant_id: str) -> list[OutdoorCheckRecord]:
        """List a plant's outdoor checks, newest first."""
        rows = self._fetch_all(
            "SELECT * FROM outdoor_checks WHERE plant_id = ? ORDER BY checked_at DESC, id",
            (plant_id,),
        )
        return [OutdoorCheckRecord.from_row(row) for row in rows]

    def list_outdoor_checks_by_state(
        self, states: Iterable[SyncState]
    ) -> list[OutdoorCheckRecord]:
        """List outdoor checks whose sync state is in ``states``."""
        rows = self._query_by_state("outdoor_checks", states)
        return [OutdoorCheckRecord.from_row(row) for row in rows]

    def upsert_outdoor_check(self, check: OutdoorCheckRecord) -> None:
        """Insert or fully replace an outdoor check."""
        self._upsert("outdoor_checks", "id", {
            "id": check.id,
            "plant_id": check.plant_id,
            "city_name": check.city_name,
            "latitude": check.latitude,
            "longitude": check.longitude,
            "temp_c": check.temp_c,
            "feels_like_c": check.feels_like_c,
            "humidity_percent": check.humidity_percent,
            "wind_kmh": check.wind_kmh,
            "uv_index": check.uv_index,
            "min_temp_next_24h_c": check.min_temp_next_24h_c,
            "weather_description": check.weather_description,
            "verdict": check.verdict,
            "verdict_color": check.verdict_color,
            "analysis": check.analysis,
            "warnings_json": json.dumps(check.warnings),
            "recommendations_json": json.dumps(check.recommendations),
            "checked_at": check.checked_at,
            "created_at": check.created_at,
            "updated_at": check.updated_at,
            "sync_state": check.sync_state.value,
            "last_sync_error": check.last_sync_error,
        })
        self._notify(RecordKind.OUTDOOR_CHECK)

    # === Care guides ===

    def get_care_guide(self, plant_id: str) -> CareGuideRecord | None:
        """Get the care guide of a plant."""
        row = self._fetch_one("SELECT * FROM care_guides WHERE plant_id = ?", (plant_id,))
        return CareGuideRecord.from_row(row) if row else None

    def list_care_guides_by_state(
        self, states: Iterable[SyncState]
    ) -> list[CareGuideRecord]:
        """List care guides whose sync state is in ``states``."""
        rows = self._query_by_state("care_guides", states)
        return [CareGuideRecord.from_row(row) for row in rows]

    def upsert_care_guide(self, guide: CareGuideRecord) -> None:
        """Insert or fully replace a care guide."""
        self._upsert("care_guides", "plant_id", {
            "plant_id": guide.plant_id,
            "watering_info": guide.watering_info,
            "light_info": guide.light_info,
            "temperature_info": guide.temperature_info,
            "humidity_info": guide.humidity_info,
            "soil_info": guide.soil_info,
            "fertilization_info": guide.fertilization_info,
            "pruning_info": guide.pruning_info,
            "common_issues": guide.common_issues,
            "seasonal_tips": guide.seasonal_tips,
            "fetched_at": guide.fetched_at,
            "created_at": guide.created_at,
            "updated_at": guide.updated_at,
            "sync_state": guide.sync_state.value,
            "last_sync_error": guide.last_sync_error,
        })
        self._notify(RecordKind.CARE_GUIDE)

    def delete_care_guide(self, plant_id: str) -> bool:
        """Delete the care guide of a plant."""
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM care_guides WHERE plant_id = ?", (plant_id,)
            )
        deleted = cursor.rowcount > 0
        if deleted:
            self._notify(RecordKind.CARE_GUIDE)
        return deleted

    # === Light measurements ===

    def get_light_measurement(self, measurement_id: str) -> LightMeasurementRecord | None:
        """Get a light measurement by id."""
        row = self._fetch_one(
            "SELECT * FROM light_measurements WHERE id = ?", (measurement_id,)
        )
        return LightMeasurementRecord.from_row(row) if row else None

    def list_light_measurements(self, plant_id: str) -> list[LightMeasurementRecord]:
        """List a plant's light measurements, newest first."""
        rows = self._fetch_all(
            "SELECT * FROM light_measurements WHERE plant_id = ? "
            "ORDER BY measured_at DESC, id",
            (plant_id,),
        )
        return [LightMeasurementRecord.from_row(row) for row in rows]

    def list_light_measurements_by_state(
        self, states: Iterable[SyncState]
    ) -> list[LightMeasurementRecord]:
        """List light measurements whose sync state is in ``states``."""
        rows = self._query_by_state("light_measurements", states)
        return [LightMeasurementRecord.from_row(row) for row in rows]

    def upsert_light_measurement(self, measurement: LightMeasurementRecord) -> None:
        """Insert or fully replace a light measurement."""
        self._upsert("light_measurements", "id", {
            "id": measurement.id,
            "plant_id": measurement.plant_id,
            "lux_value": measurement.lux_value,
            "assessment_label": measurement.assessment_label,
            "assessment_level": measurement.assessment_level,
            "ideal_min_lux": measurement.ideal_min_lux,
            "ideal_max_lux": measurement.ideal_max_lux,
            "ideal_description": measurement.ideal_description,
            "adequacy_percent": measurement.adequacy_percent,
            "recommendations": measurement.recommendations,
            "time_of_day": measurement.time_of_day,
            "measured_at": measurement.measured_at,
            "created_at": measurement.created_at,
            "updated_at": measurement.updated_at,
            "sync_state": measurement.sync_state.value,
            "last_sync_error": measurement.last_sync_error,
        })
        self._notify(RecordKind.LIGHT_MEASUREMENT)

    # === Sync state ===

    def _query_by_state(self, table: str, states: Iterable[SyncState]) -> list[sqlite3.Row]:
        values = [SyncState(s).value for s in states]
        if not values:
            return []
        placeholders = ", ".join("?" for _ in values)
        return self._fetch_all(
            f"SELECT * FROM {table} WHERE sync_state IN ({placeholders}) "
            "ORDER BY updated_at",
            values,
        )

    def set_sync_state(
        self,
        kind: RecordKind,
        record_id: str,
        state: SyncState,
        error: str | None = None,
        *,
        expected_updated_at: int | None = None,
        **changes: Any,
    ) -> bool:
        """Update the sync status of one record.

        Only the status columns (plus any explicit ``changes``) are written.

        Args:
            kind: Kind of record.
            record_id: Record id (plant id for care guides).
            state: New sync state.
            error: Failure reason (only stored for FAILED).
            expected_updated_at: If given, the write only applies when the row
                still has this ``updated_at``. A newer local edit wins.
            **changes: Extra columns to write with the status (e.g. resolved
                media URLs).

        Returns:
            True if a row was updated.
        """
        table, key = _TABLES[kind]
        assignments = ["sync_state = ?", "last_sync_error = ?"]
        values: list[Any] = [state.value, error if state is SyncState.FAILED else None]
        for column, value in changes.items():
            assignments.append(f"{column} = ?")
            values.append(value)

        where = f"{key} = ?"
        values.append(record_id)
        if expected_updated_at is not None:
            where += " AND updated_at = ?"
            values.append(expected_updated_at)

        with self._lock:
            cursor = self._conn.execute(
                f"UPDATE {table} SET {', '.join(assignments)} WHERE {where}",
                values,
            )
        updated = cursor.rowcount > 0
        if updated:
            self._notify(kind)
        return updated

    def count_by_state(self) -> dict[SyncState, int]:
        """Count syncable records per sync state, across all tables."""
        counts = dict.fromkeys(SyncState, 0)
        for table, _key in _TABLES.values():
            rows = self._fetch_all(
                f"SELECT sync_state, COUNT(*) AS n FROM {table} GROUP BY sync_state"
            )
            for row in rows:
                state = SyncState.parse(row["sync_state"])
                counts[state] += row["n"]
        return counts
