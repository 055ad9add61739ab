"""Cron-driven scheduler for the account cleanup job."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, cast
from zoneinfo import ZoneInfo

from croniter import croniter

from meshnotify.exceptions import MeshNotifyError
from meshnotify.services.background_tasks import BackgroundTaskTracker, safe_background_task
from meshnotify.utils.trigger_context import generate_trigger_id, set_trigger_id

if TYPE_CHECKING:
    from meshnotify.services.cleanup import CleanupJob, CleanupReport

logger = logging.getLogger(__name__)

TASK_NAME = "account_cleanup"


class CleanupAlreadyRunningError(MeshNotifyError):
    """A cleanup run was requested while another one is in progress."""


@dataclass
class CleanupSchedulerStatus:
    enabled: bool
    cron: str
    timezone: str
    is_running: bool
    next_run: datetime | None
    last_started_at: datetime | None
    last_finished_at: datetime | None
    last_status: str | None
    last_report: CleanupReport | None
    skipped_runs: int


class CleanupScheduler:
    """
    Runs the cleanup job on a cron schedule.

    Only one run is active at a time: a tick that fires during a run is
    skipped, and a manual run during a run is rejected.
    """

    def __init__(
        self,
        job: CleanupJob,
        tracker: BackgroundTaskTracker,
        *,
        cron: str = "0 0 * * *",
        timezone: str = "UTC",
        tick_seconds: int = 30,
        enabled: bool = True,
    ) -> None:
        self._job = job
        self._tracker = tracker
        self._cron = cron
        self._timezone = ZoneInfo(timezone)
        self._tick_seconds = tick_seconds
        self._enabled = enabled

        self._run_lock = asyncio.Lock()
        self._loop_task: asyncio.Task[None] | None = None
        self._run_task: asyncio.Task[bool] | None = None
        self._next_run: datetime | None = None
        self._last_started_at: datetime | None = None
        self._last_finished_at: datetime | None = None
        self._last_status: str | None = None
        self._last_report: CleanupReport | None = None
        self._skipped_runs = 0

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def start(self) -> None:
        """Start the schedule loop."""
        if not self._enabled:
            logger.info("Account cleanup schedule disabled")
            return
        if self._loop_task is None or self._loop_task.done():
            self._next_run = self._compute_next_run(self._now())
            self._loop_task = asyncio.create_task(self._run_loop())
            logger.info(
                "Cleanup schedule started",
                extra={"cron": self._cron, "next_run": self._next_run.isoformat()},
            )

    async def stop(self) -> None:
        """Stop the schedule loop and wait for a scheduled run in progress."""
        if self._loop_task and not self._loop_task.done():
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
        if self._run_task and not self._run_task.done():
            logger.info("Waiting for in-progress cleanup run")
            await self._run_task
        logger.info("Cleanup schedule stopped")

    async def run_now(self) -> CleanupReport:
        """
        Run the cleanup job immediately.

        Raises:
            CleanupAlreadyRunningError: If a run is already in progress
        """
        if self._run_lock.locked():
            raise CleanupAlreadyRunningError(
                "Account cleanup is already running",
                context={"started_at": self._last_started_at},
            )
        async with self._run_lock:
            return await self._run_once()

    def get_status(self) -> CleanupSchedulerStatus:
        return CleanupSchedulerStatus(
            enabled=self._enabled,
            cron=self._cron,
            timezone=self._timezone.key,
            is_running=self.is_running,
            next_run=self._next_run,
            last_started_at=self._last_started_at,
            last_finished_at=self._last_finished_at,
            last_status=self._last_status,
            last_report=self._last_report,
            skipped_runs=self._skipped_runs,
        )

    async def _run_loop(self) -> None:
        while True:
            try:
                await self.tick()
                await asyncio.sleep(self._tick_seconds)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.exception(
                    "Cleanup schedule loop error",
                    extra={"error": str(e), "error_type": type(e).__name__},
                )
                await asyncio.sleep(self._tick_seconds)

    async def tick(self, now: datetime | None = None) -> bool:
        """
        Run the job if it is due.

        Returns:
            True if a run was started and completed on this tick
        """
        now = now or self._now()
        if self._next_run is None:
            self._next_run = self._compute_next_run(now)
        if self._next_run > now:
            return False

        scheduled_time = self._next_run
        self._next_run = self._compute_next_run(now)

        if self._run_lock.locked():
            self._skipped_runs += 1
            logger.info(
                "Scheduled cleanup skipped (already running)",
                extra={"scheduled_time": scheduled_time.isoformat()},
            )
            return False

        await self._run_lock.acquire()
        self._run_task = asyncio.create_task(self._scheduled_run())
        # Cancelling the loop must not cancel the run itself.
        return await asyncio.shield(self._run_task)

    async def _scheduled_run(self) -> bool:
        set_trigger_id(generate_trigger_id())
        try:
            return await safe_background_task(TASK_NAME, self._run_once, self._tracker)
        finally:
            self._run_lock.release()

    async def _run_once(self) -> CleanupReport:
        self._last_started_at = self._now()
        self._last_status = "running"
        try:
            report = await self._job.run()
        except asyncio.CancelledError:
            self._last_status = "cancelled"
            raise
        except Exception:
            self._last_status = "error"
            raise
        else:
            self._last_status = "success"
            self._last_report = report
            return report
        finally:
            self._last_finished_at = self._now()

    def _compute_next_run(self, base_time: datetime) -> datetime:
        iterator = croniter(self._cron, base_time)
        return cast("datetime", iterator.get_next(datetime))

    def _now(self) -> datetime:
        return datetime.now(self._timezone)
