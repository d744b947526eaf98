"""Local record types.

This module provides:
- OwnerRecord: The user owning the plants (not synced)
- PlantRecord: A plant, with media references
- OutdoorCheckRecord: A weather/verdict snapshot attached to a plant
- CareGuideRecord: The care guide of a plant (one per plant)
- LightMeasurementRecord: A light reading and its assessment for a plant

Timestamps are integer milliseconds since epoch.
"""

from __future__ import annotations

import json
import sqlite3
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum

from plantsync.core.types import SyncState

# Media fields of a plant and the blob name each one is uploaded to
PLANT_MEDIA_FIELDS: tuple[tuple[str, str], ...] = (
    ("user_photo_url", "user.jpg"),
    ("reference_photo_url", "reference.jpg"),
)


def now_ms() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


def new_id() -> str:
    """Generate a client-side record id."""
    return uuid.uuid4().hex


def next_updated_at(previous: int | None) -> int:
    """Return a fresh ``updated_at`` strictly greater than ``previous``."""
    now = now_ms()
    if previous is None:
        return now
    return max(now, previous + 1)


@dataclass
class OwnerRecord:
    """Owner of plants. Must exist locally before any plant referencing it."""

    id: str
    email: str
    display_name: str | None = None
    profile_photo_url: str | None = None
    created_at: int = 0
    updated_at: int = 0

    @classmethod
    def stub(cls, owner_id: str) -> OwnerRecord:
        """Minimal local owner row used when the real profile is not known yet."""
        now = now_ms()
        return cls(
            id=owner_id,
            email="local@plantcare.app",
            display_name="You",
            created_at=now,
            updated_at=now,
        )

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> OwnerRecord:
        """Create OwnerRecord from database row."""
        return cls(
            id=row["id"],
            email=row["email"],
            display_name=row["display_name"],
            profile_photo_url=row["profile_photo_url"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


@dataclass
class PlantRecord:
    """A plant owned by a user.

    Attributes:
        id: Client-generated identifier (empty means "assign one on save").
        owner_id: Owning user.
        common_name: Display name of the plant.
        user_photo_url: Photo taken by the user. Remote URL or local-only URI.
        reference_photo_url: Reference photo. Remote URL or local-only URI.
        added_method: How the plant was added ("name", "photo", ...).
        sync_state: Current sync state.
        last_sync_error: Last failure reason, only set when FAILED.
    """

    id: str
    owner_id: str
    common_name: str
    scientific_name: str | None = None
    nickname: str | None = None
    location: str | None = None
    user_photo_url: str = ""
    reference_photo_url: str | None = None
    added_method: str = "name"
    notes: str | None = None
    acquired_date: int | None = None
    watering_frequency: str | None = None
    light_requirements: str | None = None
    health_status: str | None = None
    is_analyzed: bool = False
    created_at: int = 0
    updated_at: int = 0
    sync_state: SyncState = SyncState.PENDING
    last_sync_error: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> PlantRecord:
        """Create PlantRecord from database row."""
        return cls(
            id=row["id"],
            owner_id=row["owner_id"],
            common_name=row["common_name"],
            scientific_name=row["scientific_name"],
            nickname=row["nickname"],
            location=row["location"],
            user_photo_url=row["user_photo_url"],
            reference_photo_url=row["reference_photo_url"],
            added_method=row["added_method"],
            notes=row["notes"],
            acquired_date=row["acquired_date"],
            watering_frequency=row["watering_frequency"],
            light_requirements=row["light_requirements"],
            health_status=row["health_status"],
            is_analyzed=bool(row["is_analyzed"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            sync_state=SyncState.parse(row["sync_state"]),
            last_sync_error=row["last_sync_error"],
        )


@dataclass
class OutdoorCheckRecord:
    """Result of checking whether a plant can go outside."""

    id: str
    plant_id: str
    latitude: float
    longitude: float
    temp_c: float
    feels_like_c: float
    humidity_percent: int
    wind_kmh: float
    verdict: str
    verdict_color: str
    analysis: str
    city_name: str | None = None
    uv_index: float | None = None
    min_temp_next_24h_c: float | None = None
    weather_description: str | None = None
    warnings: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    checked_at: int = 0
    created_at: int = 0
    updated_at: int = 0
    sync_state: SyncState = SyncState.PENDING
    last_sync_error: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> OutdoorCheckRecord:
        """Create OutdoorCheckRecord from database row."""
        return cls(
            id=row["id"],
            plant_id=row["plant_id"],
            latitude=row["latitude"],
            longitude=row["longitude"],
            temp_c=row["temp_c"],
            feels_like_c=row["feels_like_c"],
            humidity_percent=row["humidity_percent"],
            wind_kmh=row["wind_kmh"],
            verdict=row["verdict"],
            verdict_color=row["verdict_color"],
            analysis=row["analysis"],
            city_name=row["city_name"],
            uv_index=row["uv_index"],
            min_temp_next_24h_c=row["min_temp_next_24h_c"],
            weather_description=row["weather_description"],
            warnings=json.loads(row["warnings_json"] or "[]"),
            recommendations=json.loads(row["recommendations_json"] or "[]"),
            checked_at=row["checked_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            sync_state=SyncState.parse(row["sync_state"]),
            last_sync_error=row["last_sync_error"],
        )


class RecordKind(str, Enum):
    """Kind of syncable record."""

    PLANT = "plant"
    OUTDOOR_CHECK = "outdoor_check"
    CARE_GUIDE = "care_guide"
    LIGHT_MEASUREMENT = "light_measurement"


# Keys accepted by PlantRepository.save_care_guide()
CARE_GUIDE_FIELDS: tuple[str, ...] = (
    "watering_info",
    "light_info",
    "temperature_info",
    "humidity_info",
    "soil_info",
    "fertilization_info",
    "pruning_info",
    "common_issues",
    "seasonal_tips",
)


@dataclass
class CareGuideRecord:
    """Care guide of a plant. Keyed by the plant id."""

    plant_id: str
    watering_info: str | None = None
    light_info: str | None = None
    temperature_info: str | None = None
    humidity_info: str | None = None
    soil_info: str | None = None
    fertilization_info: str | None = None
    pruning_info: str | None = None
    common_issues: str | None = None
    seasonal_tips: str | None = None
    fetched_at: int = 0
    created_at: int = 0
    updated_at: int = 0
    sync_state: SyncState = SyncState.PENDING
    last_sync_error: str | None = None

    @property
    def id(self) -> str:
        """Care guides share the id of their plant."""
        return self.plant_id

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> CareGuideRecord:
        """Create CareGuideRecord from database row."""
        return cls(
            plant_id=row["plant_id"],
            watering_info=row["watering_info"],
            light_info=row["light_info"],
            temperature_info=row["temperature_info"],
            humidity_info=row["humidity_info"],
            soil_info=row["soil_info"],
            fertilization_info=row["fertilization_info"],
            pruning_info=row["pruning_info"],
            common_issues=row["common_issues"],
            seasonal_tips=row["seasonal_tips"],
            fetched_at=row["fetched_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            sync_state=SyncState.parse(row["sync_state"]),
            last_sync_error=row["last_sync_error"],
        )


@dataclass
class LightMeasurementRecord:
    """A light reading taken for a plant, with its assessment.

    Attributes:
        lux_value: Measured illuminance in lux.
        assessment_label: Human readable summary (e.g. "Adequate Light").
        assessment_level: Machine readable level ("low", "adequate", ...).
        ideal_min_lux: Lower bound of the plant's ideal range, if known.
        ideal_max_lux: Upper bound of the plant's ideal range, if known.
        adequacy_percent: How close the reading is to the ideal range.
        recommendations: Free text advice.
        time_of_day: When the reading was taken ("morning", ...).
        measured_at: Time of the reading.
    """

    id: str
    plant_id: str
    lux_value: float
    assessment_label: str = "Unknown"
    assessment_level: str = "unknown"
    ideal_min_lux: float | None = None
    ideal_max_lux: float | None = None
    ideal_description: str | None = None
    adequacy_percent: int | None = None
    recommendations: str | None = None
    time_of_day: str | None = None
    measured_at: int = 0
    created_at: int = 0
    updated_at: int = 0
    sync_state: SyncState = SyncState.PENDING
    last_sync_error: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> LightMeasurementRecord:
        """Create LightMeasurementRecord from database row."""
        return cls(
            id=row["id"],
            plant_id=row["plant_id"],
            lux_value=row["lux_value"],
            assessment_label=row["assessment_label"],
            assessment_level=row["assessment_level"],
            ideal_min_lux=row["ideal_min_lux"],
            ideal_max_lux=row["ideal_max_lux"],
            ideal_description=row["ideal_description"],
            adequacy_percent=row["adequacy_percent"],
            recommendations=row["recommendations"],
            time_of_day=row["time_of_day"],
            measured_at=row["measured_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            sync_state=SyncState.parse(row["sync_state"]),
            last_sync_error=row["last_sync_error"],
        )
