"""Maintenance Worker - sweeps the temp upload directory on a cron schedule.

Hey future me - this worker keeps tmp/ from filling the disk!

Handlers receive uploads as files in tmp/ and are expected to move them
somewhere permanent. Anything left behind (crashed handler, client that never
finished its flow) is orphaned. Every run of the schedule (default "0 * * * *",
minute 0 of every hour) deletes the completed files in tmp/.

FAILURE POLICY:
- Directory listing fails → logged, that run is skipped, next run tries again
- Single file can't be deleted → ignored silently (no retry, no escalation)
- Anything unexpected → logged with traceback, the loop keeps going
Nothing here may ever reach request handling or kill the process.
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

from croniter import croniter

from magical_music.domain.exceptions import ConfigurationError
from magical_music.infrastructure.storage import SweepResult, TempUploadDirectory

logger = logging.getLogger(__name__)


class MaintenanceWorker:
    """Worker that runs the temp directory sweep on a cron schedule.

    Lifecycle:
    - Created in lifecycle.py during app startup
    - Runs as asyncio task via start()
    - Stopped via stop() during shutdown (sleep is interrupted immediately)
    """

    def __init__(self, temp_dir: TempUploadDirectory, schedule: str = "0 * * * *") -> None:
        if not croniter.is_valid(schedule):
            raise ConfigurationError(f"Invalid cleanup schedule: {schedule!r}")
        self._temp_dir = temp_dir
        self._schedule = schedule
        self._running = False
        self._wakeup = asyncio.Event()
        self._stats: dict[str, Any] = {
            "runs": 0,
            "files_removed": 0,
            "last_run_at": None,
            "last_result": None,
        }

    @property
    def is_running(self) -> bool:
        return self._running

    def next_run_after(self, moment: datetime) -> datetime:
        """Next scheduled run strictly after `moment`."""
        return croniter(self._schedule, moment).get_next(datetime)

    async def start(self) -> None:
        """Run sweeps until stop() is called."""
        # stop() may land before this task is first scheduled (fast shutdown).
        if self._wakeup.is_set():
            return
        self._running = True
        logger.info("MaintenanceWorker started (schedule=%r, dir=%s)", self._schedule, self._temp_dir.root)

        try:
            while self._running:
                now = datetime.now(UTC)
                delay = (self.next_run_after(now) - now).total_seconds()
                try:
                    await asyncio.wait_for(self._wakeup.wait(), timeout=max(delay, 0.0))
                except TimeoutError:
                    pass
                if not self._running:
                    break
                try:
                    await self.run_once()
                except Exception as e:
                    logger.exception(f"MaintenanceWorker error: {e}")
        finally:
            self._running = False

        logger.info("MaintenanceWorker stopped")

    def stop(self) -> None:
        """Signal the worker to stop."""
        self._running = False
        self._wakeup.set()

    async def run_once(self) -> SweepResult:
        """Sweep the temp directory now (also used by tests and the schedule)."""
        result = await asyncio.to_thread(self._temp_dir.sweep)

        self._stats["runs"] += 1
        self._stats["files_removed"] += result.removed
        self._stats["last_run_at"] = datetime.now(UTC)
        self._stats["last_result"] = result

        if result.removed:
            logger.info("Temp directory sweep removed %d file(s)", result.removed)
        else:
            logger.debug("Temp directory sweep found nothing to remove")
        return result

    def get_stats(self) -> dict[str, Any]:
        """Get worker statistics."""
        return {
            **self._stats,
            "running": self._running,
            "schedule": self._schedule,
        }
