"""HTTP adapter for the remote document store.

This module provides:
- RemoteDataSource: async client translating local records to/from documents
- Document and blob operations (upsert, fetch, delete, upload)

Layout on the remote:
    users/{owner_id}/plants/{plant_id}
    users/{owner_id}/outdoor_checks/{check_id}
    users/{owner_id}/care_guides/{plant_id}
    users/{owner_id}/light_measurements/{measurement_id}
    storage/users/{owner_id}/plants/{plant_id}/{user,reference}.jpg
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx
from pydantic import ValidationError

from plantsync.client.media import is_remote_media
from plantsync.client.models import (
    PLANT_MEDIA_FIELDS,
    CareGuideRecord,
    LightMeasurementRecord,
    OutdoorCheckRecord,
    PlantRecord,
)
from plantsync.client.schemas import (
    CareGuideDocument,
    LightMeasurementDocument,
    OutdoorCheckDocument,
    PlantDocument,
    RemoteDocument,
    care_guide_to_document,
    document_to_care_guide,
    document_to_light_measurement,
    document_to_outdoor_check,
    document_to_plant,
    light_measurement_to_document,
    outdoor_check_to_document,
    plant_to_document,
)
from plantsync.core.config import RemoteConfig

logger = logging.getLogger(__name__)

D = TypeVar("D", bound=RemoteDocument)


class APIError(Exception):
    """Base exception for remote errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(APIError):
    """Authentication failed."""


class NotFoundError(APIError):
    """Resource not found."""


class RemoteUnavailableError(APIError):
    """The remote could not be reached (network down, timeout)."""


def plant_blob_path(owner_id: str, plant_id: str, name: str) -> str:
    """Deterministic storage path of a plant's media blob."""
    return f"users/{owner_id}/plants/{plant_id}/{name}"


class RemoteDataSource:
    """Async HTTP client for the remote document store."""

    def __init__(
        self,
        config: RemoteConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the remote data source.

        Args:
            config: Remote connection configuration.
            transport: Optional custom transport (testing).
        """
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
            headers={"Authorization": f"Bearer {config.token}"},
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> RemoteDataSource:
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request and raise appropriate exceptions."""
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise RemoteUnavailableError(f"{method} {url} failed: {e}") from e
        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code == 401:
            raise AuthenticationError("Invalid or expired token", 401)
        if response.status_code == 404:
            raise NotFoundError("Resource not found", 404)
        if response.status_code >= 400:
            raise APIError(_error_detail(response), response.status_code)
        return response

    async def _delete(self, url: str) -> None:
        """Delete a resource. A missing resource counts as deleted."""
        try:
            await self._request("DELETE", url)
        except NotFoundError:
            logger.debug("Already gone on remote: %s", url)

    async def _delete_children(
        self,
        owner_id: str,
        collection: str,
        model: type[RemoteDocument],
        plant_id: str,
    ) -> None:
        """Delete the documents of ``collection`` attached to a plant, one by one."""
        url = f"/users/{owner_id}/{collection}"
        for doc in await self._fetch_documents(url, model, params={"plantId": plant_id}):
            doc_id = getattr(doc, "id", None)
            if not doc_id:
                continue
            try:
                await self._delete(f"{url}/{doc_id}")
            except APIError as e:
                logger.warning("Failed to delete %s/%s: %s", collection, doc_id, e)

    async def _fetch_documents(
        self,
        url: str,
        model: type[D],
        params: dict[str, str] | None = None,
    ) -> list[D]:
        """Fetch a collection, skipping documents that fail validation."""
        response = await self._request("GET", url, params=params)
        documents: list[D] = []
        for item in response.json():
            try:
                documents.append(model.model_validate(item))
            except ValidationError as e:
                logger.warning(
                    "Skipping invalid %s from %s: %s",
                    model.__name__,
                    url,
                    e.errors()[0]["msg"] if e.errors() else e,
                )
        return documents

    # === Health check ===

    async def health_check(self) -> bool:
        """Check if the remote is reachable and healthy."""
        try:
            response = await self._client.get("/health")
            return response.status_code == 200
        except httpx.RequestError:
            return False

    # === Plants ===

    async def upsert_plant(self, plant: PlantRecord) -> None:
        """Create or replace a plant document.

        Raises:
            pydantic.ValidationError: If a media field is still local-only.
            APIError: If the remote rejects the document.
        """
        document = plant_to_document(plant)
        await self._request(
            "PUT",
            f"/users/{plant.owner_id}/plants/{plant.id}",
            json=document.to_wire(),
        )

    async def fetch_plants(self, owner_id: str) -> list[PlantRecord]:
        """Fetch all plant documents of an owner as SYNCED records."""
        documents = await self._fetch_documents(
            f"/users/{owner_id}/plants", PlantDocument
        )
        return [document_to_plant(owner_id, doc) for doc in documents if doc.id]

    async def delete_plant(self, owner_id: str, plant_id: str) -> None:
        """Delete a plant document and, best-effort, everything attached to it.

        The plant document goes first so the remote stays consistent even if
        the cleanup of children or blobs fails.

        Raises:
            APIError: If the plant document itself cannot be deleted.
        """
        await self._delete(f"/users/{owner_id}/plants/{plant_id}")

        try:
            await self._delete(f"/users/{owner_id}/care_guides/{plant_id}")
        except APIError as e:
            logger.warning("Failed to delete care guide of %s: %s", plant_id, e)
        try:
            await self.delete_outdoor_checks_for_plant(owner_id, plant_id)
        except APIError as e:
            logger.warning("Failed to delete outdoor checks of %s: %s", plant_id, e)
        try:
            await self.delete_light_measurements_for_plant(owner_id, plant_id)
        except APIError as e:
            logger.warning("Failed to delete light measurements of %s: %s", plant_id, e)
        for _field, name in PLANT_MEDIA_FIELDS:
            try:
                await self.delete_blob(plant_blob_path(owner_id, plant_id, name))
            except APIError as e:
                logger.warning("Failed to delete blob %s of %s: %s", name, plant_id, e)

    # === Outdoor checks ===

    async def upsert_outdoor_check(self, owner_id: str, check: OutdoorCheckRecord) -> None:
        """Create or replace an outdoor check document."""
        document = outdoor_check_to_document(check)
        await self._request(
            "PUT",
            f"/users/{owner_id}/outdoor_checks/{check.id}",
            json=document.to_wire(),
        )

    async def fetch_outdoor_checks(self, owner_id: str) -> list[OutdoorCheckRecord]:
        """Fetch all outdoor check documents of an owner as SYNCED records."""
        documents = await self._fetch_documents(
            f"/users/{owner_id}/outdoor_checks", OutdoorCheckDocument
        )
        return [document_to_outdoor_check(doc) for doc in documents if doc.id]

    async def delete_outdoor_checks_for_plant(self, owner_id: str, plant_id: str) -> None:
        """Delete every outdoor check document attached to a plant."""
        await self._delete_children(owner_id, "outdoor_checks", OutdoorCheckDocument, plant_id)

    # === Care guides ===

    async def upsert_care_guide(self, owner_id: str, guide: CareGuideRecord) -> None:
        """Create or replace a care guide document."""
        document = care_guide_to_document(guide)
        await self._request(
            "PUT",
            f"/users/{owner_id}/care_guides/{guide.plant_id}",
            json=document.to_wire(),
        )

    async def fetch_care_guides(self, owner_id: str) -> list[CareGuideRecord]:
        """Fetch all care guide documents of an owner as SYNCED records."""
        documents = await self._fetch_documents(
            f"/users/{owner_id}/care_guides", CareGuideDocument
        )
        return [document_to_care_guide(doc.id, doc) for doc in documents if doc.id]

    async def fetch_care_guide(self, owner_id: str, plant_id: str) -> CareGuideRecord | None:
        """Fetch the care guide of one plant, or None if the remote has none."""
        try:
            response = await self._request(
                "GET", f"/users/{owner_id}/care_guides/{plant_id}"
            )
        except NotFoundError:
            return None
        document = CareGuideDocument.model_validate(response.json())
        return document_to_care_guide(plant_id, document)

    # === Light measurements ===

    async def upsert_light_measurement(
        self, owner_id: str, measurement: LightMeasurementRecord
    ) -> None:
        """Create or replace a light measurement document."""
        document = light_measurement_to_document(measurement)
        await self._request(
            "PUT",
            f"/users/{owner_id}/light_measurements/{measurement.id}",
            json=document.to_wire(),
        )

    async def fetch_light_measurements(self, owner_id: str) -> list[LightMeasurementRecord]:
        """Fetch all light measurement documents of an owner as SYNCED records."""
        documents = await self._fetch_documents(
            f"/users/{owner_id}/light_measurements", LightMeasurementDocument
        )
        return [document_to_light_measurement(doc) for doc in documents if doc.id]

    async def delete_light_measurements_for_plant(self, owner_id: str, plant_id: str) -> None:
        """Delete every light measurement document attached to a plant."""
        await self._delete_children(
            owner_id, "light_measurements", LightMeasurementDocument, plant_id
        )

    # === Blob storage ===

    async def upload_blob(self, path: str, data: bytes, content_type: str = "image/jpeg") -> str:
        """Upload a blob and return its remote URL.

        Args:
            path: Deterministic storage path.
            data: Blob content.
            content_type: MIME type of the blob.

        Returns:
            Remote URL of the stored blob.

        Raises:
            APIError: If the remote returns no URL, or one that is not a
                remote URL (it would be taken for local-only media).
        """
        response = await self._request(
            "PUT",
            f"/storage/{path}",
            content=data,
            headers={"Content-Type": content_type},
        )
        url = response.json().get("url")
        if not url:
            raise APIError(f"Upload of {path} returned no URL", response.status_code)
        if not is_remote_media(str(url)):
            raise APIError(
                f"Upload of {path} returned a non-remote URL: {url}", response.status_code
            )
        return str(url)

    async def delete_blob(self, path: str) -> None:
        """Delete a blob. A missing blob counts as deleted."""
        await self._delete(f"/storage/{path}")


def _error_detail(response: httpx.Response) -> str:
    """Extract an error message from an error response."""
    try:
        detail = response.json().get("detail")
    except (ValueError, AttributeError):
        detail = None
    return str(detail) if detail else f"HTTP {response.status_code}"
