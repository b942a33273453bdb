"""Application lifecycle management for startup and shutdown.

Hey future me - this is the ONLY place that decides the order of "database
connect" vs "start serving". Earlier iterations of this backend disagreed on
it, so the choice is now an explicit StartupPolicy:

FAIL_FAST (default, connect-then-listen):
    The lifespan awaits the database probe BEFORE yielding. uvicorn only binds
    its socket after lifespan startup completes, so on failure no connection is
    ever accepted: StartupError escapes, uvicorn aborts, main.run() exits 1.

DEGRADED (listen-then-connect):
    The lifespan yields right away and the probe runs as a background task.
    Failure is logged and the process keeps serving; endpoints that need the
    database fail on their own, /health stays 200 and /health/ready says 503.

Both policies log exactly the same two events: "Database connected" and
"Database failed".
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI

from magical_music.application.workers import MaintenanceWorker
from magical_music.config import Settings
from magical_music.domain.exceptions import InvalidStateException, StartupError
from magical_music.domain.value_objects import ServerState, StartupPolicy, can_transition
from magical_music.infrastructure.observability import configure_logging
from magical_music.infrastructure.persistence import Database
from magical_music.infrastructure.storage import TempUploadDirectory

if TYPE_CHECKING:
    from magical_music.infrastructure.realtime import RealtimeHub

logger = logging.getLogger(__name__)


class LifecycleController:
    """Owns the server state machine, the database probe and the maintenance worker."""

    def __init__(
        self,
        settings: Settings,
        database: Database | None = None,
        policy: StartupPolicy | None = None,
        configure_logs: bool = True,
    ) -> None:
        self.settings = settings
        self.policy = policy or settings.startup_policy
        self.database = database if database is not None else Database(settings.database)
        self.temp_dir = TempUploadDirectory(
            settings.uploads.temp_dir_path,
            staging_dir_name=settings.uploads.staging_dir_name,
            min_age_seconds=settings.maintenance.min_age_seconds,
            stale_staging_seconds=settings.maintenance.stale_staging_seconds,
        )
        self.maintenance: MaintenanceWorker | None = None
        self.started_at: datetime | None = None
        self._configure_logs = configure_logs
        self._state = ServerState.STARTING
        self._history: list[ServerState] = [ServerState.STARTING]
        self._serving = False
        self._maintenance_task: asyncio.Task[None] | None = None
        self._db_task: asyncio.Task[bool] | None = None

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def history(self) -> list[ServerState]:
        return list(self._history)

    @property
    def is_serving(self) -> bool:
        """True between "listening" and "shutting_down"."""
        return self._serving

    @property
    def database_ready(self) -> bool:
        return self.database.is_connected

    def transition(self, target: ServerState) -> None:
        """Move to `target`, refusing moves the transition table does not allow."""
        if not can_transition(self._state, target):
            raise InvalidStateException(
                f"Illegal lifecycle transition {self._state.value} -> {target.value}",
                current_state=self._state,
                target_state=target,
            )
        logger.debug("Lifecycle: %s -> %s", self._state.value, target.value)
        self._state = target
        self._history.append(target)
        if target == ServerState.LISTENING:
            self._serving = True
        elif target in (ServerState.SHUTTING_DOWN, ServerState.TERMINATED):
            self._serving = False

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def startup(self) -> None:
        """Run the startup sequence for the configured policy.

        Raises:
            StartupError: fail-fast policy and the database probe failed
        """
        logger.info(
            "Starting application: %s (policy=%s)", self.settings.app_name, self.policy.value
        )

        self.temp_dir.ensure()
        logger.info("Temp upload directory ready: %s", self.temp_dir.root)
        self._start_maintenance()

        if self.policy == StartupPolicy.FAIL_FAST:
            if not await self.connect_database():
                await self._abort()
                raise StartupError("Database failed; refusing to accept connections")
            self.transition(ServerState.LISTENING)
        else:
            self.transition(ServerState.LISTENING)
            self._db_task = asyncio.create_task(self.connect_database(), name="database-connect")

        self.started_at = datetime.now(UTC)
        logger.info(
            "Server accepting connections on port %d", self.settings.server.port
        )

    async def connect_database(self) -> bool:
        """Probe the database; logs the outcome and returns whether it connected."""
        self.transition(ServerState.DB_CONNECTING)
        try:
            await self.database.connect()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.transition(ServerState.DB_FAILED)
            logger.error("Database failed ❌ (%s)", self.database.safe_url, exc_info=e)
            return False

        self.transition(ServerState.DB_CONNECTED)
        logger.info("Database connected ✅ (%s)", self.database.safe_url)
        return True

    def _start_maintenance(self) -> None:
        if not self.settings.maintenance.enabled:
            logger.info("Temp directory maintenance disabled")
            return
        self.maintenance = MaintenanceWorker(
            self.temp_dir, schedule=self.settings.maintenance.schedule
        )
        self._maintenance_task = asyncio.create_task(
            self.maintenance.start(), name="maintenance-worker"
        )

    async def _abort(self) -> None:
        """Release what startup acquired after a fatal failure."""
        await self._stop_maintenance()
        with suppress(Exception):
            await self.database.close()
        if can_transition(self._state, ServerState.TERMINATED):
            self.transition(ServerState.TERMINATED)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def shutdown(self, realtime: "RealtimeHub | None" = None) -> None:
        """Stop workers, close sockets and dispose the database. Safe to call twice."""
        if self._state in (ServerState.SHUTTING_DOWN, ServerState.TERMINATED):
            return
        self.transition(ServerState.SHUTTING_DOWN)
        logger.info("Shutting down application: %s", self.settings.app_name)

        if self._db_task is not None and not self._db_task.done():
            self._db_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._db_task

        await self._stop_maintenance()

        if realtime is not None:
            try:
                await realtime.close_all()
            except Exception as e:
                logger.exception("Error closing realtime sockets: %s", e)

        try:
            await self.database.close()
            logger.info("Database connection closed")
        except Exception as e:
            logger.exception("Error closing database: %s", e)

        self.transition(ServerState.TERMINATED)
        logger.info("Application shutdown complete")

    async def _stop_maintenance(self) -> None:
        if self.maintenance is None or self._maintenance_task is None:
            return
        self.maintenance.stop()
        try:
            await asyncio.wait_for(
                self._maintenance_task, timeout=self.settings.observability.shutdown_timeout
            )
        except TimeoutError:
            logger.warning("Maintenance worker did not stop in time, cancelling")
            self._maintenance_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._maintenance_task
        self._maintenance_task = None

    # ------------------------------------------------------------------
    # FastAPI integration
    # ------------------------------------------------------------------

    def status(self) -> dict[str, Any]:
        """Snapshot for the readiness endpoint."""
        uptime = (
            (datetime.now(UTC) - self.started_at).total_seconds() if self.started_at else None
        )
        return {
            "state": self._state.value,
            "policy": self.policy.value,
            "serving": self._serving,
            "database": self.database_ready,
            "uptime_seconds": uptime,
            "maintenance": self.maintenance.get_stats() if self.maintenance else None,
        }

    # Listen future me, everything before `yield` runs at STARTUP, everything after at SHUTDOWN.
    # If startup raises, uvicorn reports "Application startup failed" and never binds its socket.
    @asynccontextmanager
    async def lifespan(self, app: FastAPI) -> AsyncGenerator[None, None]:
        """FastAPI lifespan bound to this controller."""
        if self._configure_logs:
            configure_logging(
                log_level=self.settings.log_level,
                json_format=self.settings.observability.log_json_format,
                app_name=self.settings.app_name,
            )

        app.state.database = self.database
        app.state.temp_dir = self.temp_dir

        try:
            await self.startup()
        except StartupError:
            raise
        except Exception as e:
            logger.exception("Error during application startup: %s", e)
            await self._abort()
            raise

        try:
            yield
        finally:
            await self.shutdown(getattr(app.state, "realtime", None))
