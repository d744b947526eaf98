"""Explicit sync context.

The current session and the capability handles are passed to the
repository and the reconciliation engine at construction time instead of
being looked up from module-level singletons.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from plantsync.client.media import MediaReader
from plantsync.client.models import (
    CareGuideRecord,
    LightMeasurementRecord,
    OutdoorCheckRecord,
    PlantRecord,
)


class RemoteStore(Protocol):
    """Operations the sync core needs from the remote.

    Implemented by RemoteDataSource. Every method may raise on network or
    remote failure.
    """

    async def health_check(self) -> bool: ...

    async def upsert_plant(self, plant: PlantRecord) -> None: ...

    async def fetch_plants(self, owner_id: str) -> list[PlantRecord]: ...

    async def delete_plant(self, owner_id: str, plant_id: str) -> None: ...

    async def upsert_outdoor_check(self, owner_id: str, check: OutdoorCheckRecord) -> None: ...

    async def fetch_outdoor_checks(self, owner_id: str) -> list[OutdoorCheckRecord]: ...

    async def upsert_care_guide(self, owner_id: str, guide: CareGuideRecord) -> None: ...

    async def fetch_care_guides(self, owner_id: str) -> list[CareGuideRecord]: ...

    async def fetch_care_guide(self, owner_id: str, plant_id: str) -> CareGuideRecord | None: ...

    async def upsert_light_measurement(
        self, owner_id: str, measurement: LightMeasurementRecord
    ) -> None: ...

    async def fetch_light_measurements(self, owner_id: str) -> list[LightMeasurementRecord]: ...

    async def upload_blob(self, path: str, data: bytes, content_type: str = ...) -> str: ...


@dataclass(frozen=True)
class SyncContext:
    """Session and capabilities shared by the sync components.

    Attributes:
        owner_id: Id of the signed-in user.
        auth_token: Token of the current session.
        remote: Remote document store.
        media: Reader for local-only media references.
    """

    owner_id: str
    auth_token: str
    remote: RemoteStore
    media: MediaReader
