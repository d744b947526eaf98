"""Pydantic schemas for remote documents.

The remote store keeps one document per record under
``users/{owner_id}/{collection}/{id}``. Field names on the wire are
camelCase; the models below are the explicit list of fields and types that
cross the boundary in either direction.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from plantsync.client.media import is_local_media
from plantsync.client.models import (
    CareGuideRecord,
    LightMeasurementRecord,
    OutdoorCheckRecord,
    PlantRecord,
    now_ms,
)
from plantsync.core.types import SyncState


class RemoteDocument(BaseModel):
    """Base class for remote documents."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, object]:
        """Serialize with wire (camelCase) field names."""
        return self.model_dump(by_alias=True, exclude={"id"})


# === Plant schemas ===


class PlantDocument(RemoteDocument):
    """Plant document. Media fields never carry local-only references."""

    id: str | None = None
    common_name: str = Field(alias="commonName")
    scientific_name: str | None = Field(default=None, alias="scientificName")
    nickname: str | None = None
    location: str | None = None
    user_photo_url: str = Field(default="", alias="userPhotoUrl")
    reference_photo_url: str | None = Field(default=None, alias="referencePhotoUrl")
    added_method: str = Field(default="name", alias="addedMethod")
    notes: str | None = None
    acquired_date: int | None = Field(default=None, alias="acquiredDate")
    watering_frequency: str | None = Field(default=None, alias="wateringFrequency")
    light_requirements: str | None = Field(default=None, alias="lightRequirements")
    health_status: str | None = Field(default=None, alias="healthStatus")
    is_analyzed: bool = Field(default=False, alias="isAnalyzed")
    created_at: int | None = Field(default=None, alias="createdAt")
    updated_at: int | None = Field(default=None, alias="updatedAt")

    @field_validator("user_photo_url", "reference_photo_url")
    @classmethod
    def _reject_local_media(cls, value: str | None) -> str | None:
        if is_local_media(value):
            raise ValueError(f"local-only media reference cannot be pushed: {value}")
        return value


# === Outdoor check schemas ===


class OutdoorCheckDocument(RemoteDocument):
    """Outdoor check document."""

    id: str | None = None
    plant_id: str = Field(alias="plantId")
    city_name: str | None = Field(default=None, alias="cityName")
    latitude: float
    longitude: float
    temp_c: float = Field(default=0.0, alias="tempC")
    feels_like_c: float = Field(default=0.0, alias="feelsLikeC")
    humidity_percent: int = Field(default=0, alias="humidityPercent")
    wind_kmh: float = Field(default=0.0, alias="windKmh")
    uv_index: float | None = Field(default=None, alias="uvIndex")
    min_temp_next_24h_c: float | None = Field(default=None, alias="minTempNext24hC")
    weather_description: str | None = Field(default=None, alias="weatherDescription")
    verdict: str = "Acceptable"
    verdict_color: str = Field(default="yellow", alias="verdictColor")
    analysis: str = ""
    warnings: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    checked_at: int | None = Field(default=None, alias="checkedAt")


# === Care guide schemas ===


class CareGuideDocument(RemoteDocument):
    """Care guide document, keyed by plant id."""

    id: str | None = None
    watering_info: str | None = Field(default=None, alias="wateringInfo")
    light_info: str | None = Field(default=None, alias="lightInfo")
    temperature_info: str | None = Field(default=None, alias="temperatureInfo")
    humidity_info: str | None = Field(default=None, alias="humidityInfo")
    soil_info: str | None = Field(default=None, alias="soilInfo")
    fertilization_info: str | None = Field(default=None, alias="fertilizationInfo")
    pruning_info: str | None = Field(default=None, alias="pruningInfo")
    common_issues: str | None = Field(default=None, alias="commonIssues")
    seasonal_tips: str | None = Field(default=None, alias="seasonalTips")
    fetched_at: int | None = Field(default=None, alias="fetchedAt")


# === Light measurement schemas ===


class LightMeasurementDocument(RemoteDocument):
    """Light measurement document."""

    id: str | None = None
    plant_id: str = Field(alias="plantId")
    lux_value: float = Field(alias="luxValue")
    assessment_label: str = Field(default="Unknown", alias="assessmentLabel")
    assessment_level: str = Field(default="unknown", alias="assessmentLevel")
    ideal_min_lux: float | None = Field(default=None, alias="idealMinLux")
    ideal_max_lux: float | None = Field(default=None, alias="idealMaxLux")
    ideal_description: str | None = Field(default=None, alias="idealDescription")
    adequacy_percent: int | None = Field(default=None, alias="adequacyPercent")
    recommendations: str | None = None
    time_of_day: str | None = Field(default=None, alias="timeOfDay")
    measured_at: int | None = Field(default=None, alias="measuredAt")


# === Converters ===


def plant_to_document(plant: PlantRecord) -> PlantDocument:
    """Convert a local plant to its remote document.

    Raises:
        pydantic.ValidationError: If a media field is still local-only.
    """
    return PlantDocument(
        id=plant.id,
        common_name=plant.common_name,
        scientific_name=plant.scientific_name,
        nickname=plant.nickname,
        location=plant.location,
        user_photo_url=plant.user_photo_url,
        reference_photo_url=plant.reference_photo_url,
        added_method=plant.added_method,
        notes=plant.notes,
        acquired_date=plant.acquired_date,
        watering_frequency=plant.watering_frequency,
        light_requirements=plant.light_requirements,
        health_status=plant.health_status,
        is_analyzed=plant.is_analyzed,
        created_at=plant.created_at,
        updated_at=plant.updated_at,
    )


def document_to_plant(owner_id: str, doc: PlantDocument) -> PlantRecord:
    """Convert a remote plant document to a local SYNCED plant."""
    now = now_ms()
    return PlantRecord(
        id=doc.id or "",
        owner_id=owner_id,
        common_name=doc.common_name,
        scientific_name=doc.scientific_name,
        nickname=doc.nickname,
        location=doc.location,
        user_photo_url=doc.user_photo_url,
        reference_photo_url=doc.reference_photo_url,
        added_method=doc.added_method,
        notes=doc.notes,
        acquired_date=doc.acquired_date,
        watering_frequency=doc.watering_frequency,
        light_requirements=doc.light_requirements,
        health_status=doc.health_status,
        is_analyzed=doc.is_analyzed,
        created_at=doc.created_at or now,
        updated_at=doc.updated_at or now,
        sync_state=SyncState.SYNCED,
        last_sync_error=None,
    )


def outdoor_check_to_document(check: OutdoorCheckRecord) -> OutdoorCheckDocument:
    """Convert a local outdoor check to its remote document."""
    return OutdoorCheckDocument(
        id=check.id,
        plant_id=check.plant_id,
        city_name=check.city_name,
        latitude=check.latitude,
        longitude=check.longitude,
        temp_c=check.temp_c,
        feels_like_c=check.feels_like_c,
        humidity_percent=check.humidity_percent,
        wind_kmh=check.wind_kmh,
        uv_index=check.uv_index,
        min_temp_next_24h_c=check.min_temp_next_24h_c,
        weather_description=check.weather_description,
        verdict=check.verdict,
        verdict_color=check.verdict_color,
        analysis=check.analysis,
        warnings=list(check.warnings),
        recommendations=list(check.recommendations),
        checked_at=check.checked_at,
    )


def document_to_outdoor_check(doc: OutdoorCheckDocument) -> OutdoorCheckRecord:
    """Convert a remote outdoor check document to a local SYNCED record."""
    now = now_ms()
    checked_at = doc.checked_at or now
    return OutdoorCheckRecord(
        id=doc.id or "",
        plant_id=doc.plant_id,
        city_name=doc.city_name,
        latitude=doc.latitude,
        longitude=doc.longitude,
        temp_c=doc.temp_c,
        feels_like_c=doc.feels_like_c,
        humidity_percent=doc.humidity_percent,
        wind_kmh=doc.wind_kmh,
        uv_index=doc.uv_index,
        min_temp_next_24h_c=doc.min_temp_next_24h_c,
        weather_description=doc.weather_description,
        verdict=doc.verdict,
        verdict_color=doc.verdict_color,
        analysis=doc.analysis,
        warnings=list(doc.warnings),
        recommendations=list(doc.recommendations),
        checked_at=checked_at,
        created_at=checked_at,
        updated_at=now,
        sync_state=SyncState.SYNCED,
        last_sync_error=None,
    )


def care_guide_to_document(guide: CareGuideRecord) -> CareGuideDocument:
    """Convert a local care guide to its remote document."""
    return CareGuideDocument(
        id=guide.plant_id,
        watering_info=guide.watering_info,
        light_info=guide.light_info,
        temperature_info=guide.temperature_info,
        humidity_info=guide.humidity_info,
        soil_info=guide.soil_info,
        fertilization_info=guide.fertilization_info,
        pruning_info=guide.pruning_info,
        common_issues=guide.common_issues,
        seasonal_tips=guide.seasonal_tips,
        fetched_at=guide.fetched_at,
    )


def document_to_care_guide(plant_id: str, doc: CareGuideDocument) -> CareGuideRecord:
    """Convert a remote care guide document to a local SYNCED record."""
    now = now_ms()
    fetched_at = doc.fetched_at or now
    return CareGuideRecord(
        plant_id=plant_id,
        watering_info=doc.watering_info,
        light_info=doc.light_info,
        temperature_info=doc.temperature_info,
        humidity_info=doc.humidity_info,
        soil_info=doc.soil_info,
        fertilization_info=doc.fertilization_info,
        pruning_info=doc.pruning_info,
        common_issues=doc.common_issues,
        seasonal_tips=doc.seasonal_tips,
        fetched_at=fetched_at,
        created_at=fetched_at,
        updated_at=now,
        sync_state=SyncState.SYNCED,
        last_sync_error=None,
    )


def light_measurement_to_document(
    measurement: LightMeasurementRecord,
) -> LightMeasurementDocument:
    """Convert a local light measurement to its remote document."""
    return LightMeasurementDocument(
        id=measurement.id,
        plant_id=measurement.plant_id,
        lux_value=measurement.lux_value,
        assessment_label=measurement.assessment_label,
        assessment_level=measurement.assessment_level,
        ideal_min_lux=measurement.ideal_min_lux,
        ideal_max_lux=measurement.ideal_max_lux,
        ideal_description=measurement.ideal_description,
        adequacy_percent=measurement.adequacy_percent,
        recommendations=measurement.recommendations,
        time_of_day=measurement.time_of_day,
        measured_at=measurement.measured_at,
    )


def document_to_light_measurement(doc: LightMeasurementDocument) -> LightMeasurementRecord:
    """Convert a remote light measurement document to a local SYNCED record."""
    now = now_ms()
    measured_at = doc.measured_at or now
    return LightMeasurementRecord(
        id=doc.id or "",
        plant_id=doc.plant_id,
        lux_value=doc.lux_value,
        assessment_label=doc.assessment_label,
        assessment_level=doc.assessment_level,
        ideal_min_lux=doc.ideal_min_lux,
        ideal_max_lux=doc.ideal_max_lux,
        ideal_description=doc.ideal_description,
        adequacy_percent=doc.adequacy_percent,
        recommendations=doc.recommendations,
        time_of_day=doc.time_of_day,
        measured_at=measured_at,
        created_at=measured_at,
        updated_at=now,
        sync_state=SyncState.SYNCED,
        last_sync_error=None,
    )
