"""Plant commands for PlantSync CLI.

Commands:
- init: Write the CLI configuration
- add: Add a plant locally
- remove: Delete a plant locally and on the remote
- status: List plants with their sync state
- pull: Merge remote records into the local store
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

from plantsync.client.cli.config import (
    get_config_dir,
    get_db_path,
    is_configured,
    load_config,
    save_config,
)
from plantsync.client.models import PlantRecord, new_id
from plantsync.core.types import SyncState


def require_config() -> dict[str, str]:
    """Load the config, exiting if PlantSync is not initialized."""
    config = load_config()
    if not is_configured(config):
        click.echo("Error: PlantSync not initialized. Run 'plantsync init' first.", err=True)
        sys.exit(1)
    return config


@click.command()
@click.option("--remote", required=True, help="Remote URL (e.g., https://api.example.com).")
@click.option("--token", required=True, help="Auth token of the current session.")
@click.option("--owner", default=None, help="Owner id (default: a new id).")
@click.option(
    "--media-root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory local:// media URIs resolve against.",
)
def init(remote: str, token: str, owner: str | None, media_root: Path | None) -> None:
    """Initialize PlantSync configuration."""
    config = load_config()
    if is_configured(config):
        click.echo("Warning: PlantSync is already initialized.", err=True)
        if not click.confirm("Do you want to overwrite the configuration?"):
            sys.exit(0)

    config["remote_url"] = remote.rstrip("/")
    config["auth_token"] = token
    config["owner_id"] = owner or config.get("owner_id") or new_id()
    if media_root is not None:
        config["media_root"] = str(media_root.expanduser().resolve())
    save_config(config)

    click.echo("PlantSync initialized.")
    click.echo(f"Config directory: {get_config_dir()}")
    click.echo(f"Owner: {config['owner_id']}")


@click.command()
@click.argument("name")
@click.option(
    "--photo",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Photo of the plant (uploaded on the next sync).",
)
@click.option("--scientific-name", default=None, help="Scientific name.")
@click.option("--nickname", default=None, help="Nickname.")
@click.option("--location", default=None, help="Where the plant lives.")
def add(
    name: str,
    photo: Path | None,
    scientific_name: str | None,
    nickname: str | None,
    location: str | None,
) -> None:
    """Add a plant locally.

    The plant is stored as PENDING and pushed by the next 'plantsync sync'.
    """
    from plantsync.client.cli.session import open_session

    config = require_config()
    plant = PlantRecord(
        id="",
        owner_id=config["owner_id"],
        common_name=name,
        scientific_name=scientific_name,
        nickname=nickname,
        location=location,
        user_photo_url=str(photo.resolve()) if photo else "",
        added_method="photo" if photo else "name",
    )

    async def run() -> PlantRecord:
        async with open_session(config) as session:
            return await session.repository.upsert_plant(plant)

    saved = asyncio.run(run())
    click.echo(f"Added plant {saved.id} ({saved.sync_state.value})")


@click.command()
@click.argument("plant_id")
def remove(plant_id: str) -> None:
    """Delete a plant locally, then on the remote (best effort)."""
    from plantsync.client.cli.session import open_session

    config = require_config()

    async def run() -> bool:
        async with open_session(config) as session:
            return await session.repository.delete_plant(plant_id)

    if not asyncio.run(run()):
        click.echo(f"Error: Plant not found: {plant_id}", err=True)
        sys.exit(1)
    click.echo(f"Removed plant {plant_id}")


@click.command()
def status() -> None:
    """List local plants with their sync state."""
    from plantsync.client.state import LocalStore

    config = require_config()
    store = LocalStore(get_db_path())
    try:
        plants = store.list_plants(config["owner_id"])
        counts = store.count_by_state()
    finally:
        store.close()

    if not plants:
        click.echo("No plants.")
    for plant in plants:
        line = f"{plant.id}  {plant.common_name:<24} {plant.sync_state.value}"
        if plant.sync_state is SyncState.FAILED and plant.last_sync_error:
            line += f"  ({plant.last_sync_error})"
        click.echo(line)

    summary = ", ".join(f"{counts[state]} {state.value.lower()}" for state in SyncState)
    click.echo(f"\nRecords: {summary}")


@click.command()
def pull() -> None:
    """Merge the remote records of the owner into the local store.

    Remote records overwrite local ones.
    """
    from plantsync.client.cli.session import open_session

    config = require_config()

    async def run() -> int:
        async with open_session(config) as session:
            return await session.repository.refresh_from_remote()

    merged = asyncio.run(run())
    click.echo(f"Merged {merged} remote records")
