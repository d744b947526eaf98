"""Scheduling of reconciliation passes.

This module provides:
- SyncJob: The single background sync job (coalescing, network gating, backoff)
- PeriodicSyncScheduler: Requests a pass on a fixed interval

SyncJob request policy:
    | Job state            | request()                                 |
    |----------------------|-------------------------------------------|
    | IDLE                 | Start the job                             |
    | WAITING_FOR_NETWORK  | Coalesced into the pending run            |
    | BACKING_OFF          | Coalesced into the pending run            |
    | RUNNING              | One follow-up pass after the current one  |

At most one pass is in flight at any time, whether it was started by
request() or by run_now(). A run that finds a run_now() pass in flight
waits for it and then runs one fresh pass, since the joined pass loaded
its candidates before the request.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from plantsync.client.sync.retry import RetryPolicy
from plantsync.client.sync.types import JobState, SyncOutcome

if TYPE_CHECKING:
    from plantsync.client.sync.engine import ReconciliationEngine
    from plantsync.client.sync.retry import NetworkMonitor

logger = logging.getLogger(__name__)

UNIQUE_NAME = "plant_sync"


class SyncJob:
    """Background job running reconciliation passes.

    Usage:
        job = SyncJob(engine, HealthCheckMonitor(remote.health_check))
        job.request()            # after every local mutation
        outcome = await job.run_now()   # host-level "sync now"
        await job.stop()
    """

    def __init__(
        self,
        engine: ReconciliationEngine,
        network: NetworkMonitor,
        retry_policy: RetryPolicy | None = None,
        name: str = UNIQUE_NAME,
    ) -> None:
        """Initialize the job.

        Args:
            engine: Reconciliation engine running the passes.
            network: Connectivity capability gating every pass.
            retry_policy: Backoff between passes ending RETRY_LATER.
            name: Job name (used for logging and task names).
        """
        self._engine = engine
        self._network = network
        self._retry_policy = retry_policy or RetryPolicy()
        self._name = name

        self._state = JobState.IDLE
        self._task: asyncio.Task[None] | None = None
        self._in_flight: asyncio.Task[SyncOutcome] | None = None
        self._rerun = False
        self._attempt = 0
        self._last_outcome: SyncOutcome | None = None

    @property
    def name(self) -> str:
        """Job name."""
        return self._name

    @property
    def state(self) -> JobState:
        """Current job state."""
        return self._state

    @property
    def is_active(self) -> bool:
        """Whether a run is scheduled or in progress."""
        return self._task is not None and not self._task.done()

    @property
    def in_flight(self) -> bool:
        """Whether a reconciliation pass is running right now."""
        return self._in_flight is not None and not self._in_flight.done()

    @property
    def last_outcome(self) -> SyncOutcome | None:
        """Outcome of the last completed pass."""
        return self._last_outcome

    def request(self) -> bool:
        """Request a reconciliation pass.

        Must be called from within a running event loop.

        Returns:
            True if a new run was started, False if the request was
            coalesced into an existing one.
        """
        if self.is_active:
            if self._state is JobState.RUNNING or self.in_flight:
                self._rerun = True
            logger.debug("Sync already scheduled (%s), coalescing request", self._state.name)
            return False

        self._attempt = 0
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"{self._name}-job"
        )
        logger.debug("Sync job %s scheduled", self._name)
        return True

    async def run_now(self) -> SyncOutcome:
        """Run a reconciliation pass now.

        Idempotent: if a pass is already in flight its outcome is returned
        instead of starting another one.

        Returns:
            Outcome of the pass. RETRY_LATER without touching any record if
            the network is unavailable.
        """
        if self._in_flight is not None and not self._in_flight.done():
            return await asyncio.shield(self._in_flight)

        if not await self._network.is_available():
            logger.info("Network unavailable, not starting a sync pass")
            return SyncOutcome.RETRY_LATER

        outcome, _started = await self._run_pass()
        return outcome

    async def wait_idle(self) -> None:
        """Wait until the scheduled run (if any) has finished."""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})

    async def stop(self) -> None:
        """Cancel the scheduled run and any pass in flight.

        Local status writes already committed by the pass are kept.
        """
        tasks = [t for t in (self._task, self._in_flight) if t is not None and not t.done()]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._in_flight = None
        self._rerun = False
        self._state = JobState.IDLE
        logger.info("Sync job %s stopped", self._name)

    async def _run_pass(self) -> tuple[SyncOutcome, bool]:
        """Start a pass unless one is in flight, and return its outcome.

        Returns:
            The outcome, and whether the pass was started by this call
            (False when an in-flight pass was joined).
        """
        task = self._in_flight
        if task is None or task.done():
            task = asyncio.get_running_loop().create_task(
                self._engine.reconcile(), name=f"{self._name}-pass"
            )
            self._in_flight = task
            started = True
        else:
            started = False
        outcome = await asyncio.shield(task)
        self._last_outcome = outcome
        return outcome, started

    async def _run(self) -> None:
        """Job body: wait for network, run, back off until SUCCESS."""
        try:
            while True:
                self._rerun = False
                self._state = JobState.WAITING_FOR_NETWORK
                await self._network.wait_until_available()

                self._state = JobState.RUNNING
                started = True
                try:
                    outcome, started = await self._run_pass()
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception("Reconciliation pass crashed")
                    outcome = SyncOutcome.RETRY_LATER

                if outcome is SyncOutcome.SUCCESS:
                    self._attempt = 0
                    if self._rerun or not started:
                        logger.debug("Running a follow-up pass for requests made mid-pass")
                        continue
                    return

                self._attempt += 1
                delay = self._retry_policy.delay_for(self._attempt)
                logger.info(
                    "Sync pass needs retry (attempt %d), retrying in %.1fs",
                    self._attempt,
                    delay,
                )
                self._state = JobState.BACKING_OFF
                await asyncio.sleep(delay)
        finally:
            self._state = JobState.IDLE


class PeriodicSyncScheduler:
    """Requests a reconciliation pass on a fixed interval.

    Safety net for records left PENDING when no mutation triggers a pass
    (e.g. after an app restart).
    """

    def __init__(self, job: SyncJob, interval_minutes: float = 15.0) -> None:
        """Initialize the scheduler.

        Args:
            job: Sync job to trigger.
            interval_minutes: Minutes between two requests.
        """
        self._job = job
        self._interval_minutes = interval_minutes
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        """Whether the scheduler is started."""
        return self._scheduler is not None

    def _request_job(self) -> None:
        """Job function for scheduled sync requests."""
        started = self._job.request()
        logger.debug("Periodic sync request (started=%s)", started)

    def start(self) -> None:
        """Start the scheduler. Must be called from within a running event loop."""
        if self._scheduler is not None:
            return  # Already running

        self._scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop())
        self._scheduler.add_job(
            self._request_job,
            trigger=IntervalTrigger(minutes=self._interval_minutes),
            id=f"{self._job.name}_periodic",
            name="Periodic sync request",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        self._scheduler.start()
        logger.info(
            "Periodic sync scheduler started (every %.1f minutes)",
            self._interval_minutes,
        )

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Periodic sync scheduler stopped")

    def run_now(self) -> bool:
        """Request a pass immediately (manual trigger)."""
        return self._job.request()
