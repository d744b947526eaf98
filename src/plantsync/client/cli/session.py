"""Wiring of the sync components for CLI commands."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from plantsync.client.api import RemoteDataSource
from plantsync.client.cli.config import get_db_path, get_media_root
from plantsync.client.context import SyncContext
from plantsync.client.media import LocalMediaReader
from plantsync.client.repository import PlantRepository
from plantsync.client.state import LocalStore
from plantsync.client.sync import HealthCheckMonitor, ReconciliationEngine, SyncJob
from plantsync.core.config import RemoteConfig

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """Components shared by one CLI invocation."""

    store: LocalStore
    remote: RemoteDataSource
    context: SyncContext
    engine: ReconciliationEngine
    job: SyncJob
    repository: PlantRepository


@asynccontextmanager
async def open_session(
    config: dict[str, str], attach_job: bool = False
) -> AsyncIterator[Session]:
    """Build the components from the CLI config and tear them down on exit.

    Args:
        config: Loaded CLI config (see is_configured()).
        attach_job: Let repository writes request background passes. Only
            useful for long-running commands.
    """
    store = LocalStore(get_db_path())
    remote = RemoteDataSource(
        RemoteConfig(base_url=config["remote_url"], token=config["auth_token"])
    )
    context = SyncContext(
        owner_id=config["owner_id"],
        auth_token=config["auth_token"],
        remote=remote,
        media=LocalMediaReader(get_media_root(config)),
    )
    engine = ReconciliationEngine(store, context)
    job = SyncJob(engine, HealthCheckMonitor(remote.health_check))
    repository = PlantRepository(store, context, job if attach_job else None)

    try:
        yield Session(store, remote, context, engine, job, repository)
    finally:
        await job.stop()
        await remote.aclose()
        store.close()
        logger.debug("Session closed")
