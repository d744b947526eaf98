"""Sync command for PlantSync CLI.

Commands:
- sync: Push pending local records to the remote
"""

from __future__ import annotations

import asyncio
import sys
from typing import TYPE_CHECKING

import click

from plantsync.client.cli.plants import require_config

if TYPE_CHECKING:
    from plantsync.client.sync import SyncReport


@click.command()
@click.option("--watch", "-w", is_flag=True, help="Keep syncing in the background until interrupted.")
@click.option(
    "--interval",
    type=click.FloatRange(min=0.1),
    default=15.0,
    show_default=True,
    help="Minutes between periodic passes in watch mode.",
)
def sync(watch: bool, interval: float) -> None:
    """Push pending and failed local records to the remote.

    Without --watch, runs a single pass and exits with status 1 if any
    record could not be synced. With --watch, keeps the sync job running
    and requests a pass every --interval minutes.
    """
    from plantsync.client.cli.session import open_session
    from plantsync.client.sync import PeriodicSyncScheduler, SyncOutcome

    config = require_config()

    async def run_once() -> SyncOutcome:
        async with open_session(config) as session:
            outcome = await session.job.run_now()
            _print_report(session.engine.last_report)
            return outcome

    async def run_watch() -> None:
        async with open_session(config, attach_job=True) as session:
            scheduler = PeriodicSyncScheduler(session.job, interval_minutes=interval)
            scheduler.start()
            session.job.request()
            click.echo(f"Watching (pass every {interval:g} minutes). Press Ctrl+C to stop.")
            try:
                await asyncio.Event().wait()
            finally:
                scheduler.stop()

    if watch:
        try:
            asyncio.run(run_watch())
        except KeyboardInterrupt:
            click.echo("\nStopped.")
        return

    if asyncio.run(run_once()) is not SyncOutcome.SUCCESS:
        sys.exit(1)


def _print_report(report: SyncReport | None) -> None:
    """Print the per-record results of a pass."""
    if report is None:
        click.echo("Remote unreachable, nothing synced.", err=True)
        return
    if not report.results:
        click.echo("Everything is up to date.")
        return
    click.echo(
        f"Synced {len(report.synced)}, failed {len(report.failed)}, "
        f"skipped {len(report.skipped)}"
    )
    for result in report.failed:
        click.echo(f"  {result.kind.value} {result.record_id}: {result.error}", err=True)
