"""Tests for LifecycleController startup ordering and shutdown."""

import logging
from collections.abc import Callable
from typing import Any

import pytest
from fastapi import FastAPI

from magical_music.config import Settings
from magical_music.domain.exceptions import InvalidStateException, StartupError
from magical_music.domain.value_objects import ServerState, StartupPolicy
from magical_music.infrastructure.lifecycle import LifecycleController

# Hey future me - these tests pin the startup contract:
# 1. fail_fast connects BEFORE listening and never listens after a failure
# 2. degraded listens first and survives a failed connect
# 3. both policies log "Database connected" / "Database failed"
# 4. shutdown is idempotent and releases everything


def make_controller(settings: Settings, database: Any, policy: StartupPolicy) -> LifecycleController:
    return LifecycleController(settings, database=database, policy=policy, configure_logs=False)


class TestFailFast:
    async def test_connects_then_listens(self, settings: Settings, fake_db: Any) -> None:
        controller = make_controller(settings, fake_db, StartupPolicy.FAIL_FAST)

        await controller.startup()

        assert controller.history == [
            ServerState.STARTING,
            ServerState.DB_CONNECTING,
            ServerState.DB_CONNECTED,
            ServerState.LISTENING,
        ]
        assert controller.is_serving
        assert controller.database_ready
        await controller.shutdown()

    async def test_database_failure_never_listens(
        self, settings: Settings, failing_db: Any, caplog: pytest.LogCaptureFixture
    ) -> None:
        controller = make_controller(settings, failing_db, StartupPolicy.FAIL_FAST)

        with caplog.at_level(logging.ERROR), pytest.raises(StartupError):
            await controller.startup()

        assert ServerState.LISTENING not in controller.history
        assert controller.state == ServerState.TERMINATED
        assert controller.history[-2:] == [ServerState.DB_FAILED, ServerState.TERMINATED]
        assert not controller.is_serving
        assert failing_db.closed
        assert "Database failed" in caplog.text

    async def test_creates_temp_directory(self, settings: Settings, fake_db: Any) -> None:
        controller = make_controller(settings, fake_db, StartupPolicy.FAIL_FAST)
        await controller.startup()
        assert settings.uploads.temp_dir_path.is_dir()
        assert (settings.uploads.temp_dir_path / ".incoming").is_dir()
        await controller.shutdown()


class TestDegraded:
    async def test_listens_before_connecting(
        self, settings: Settings, fake_db: Any, caplog: pytest.LogCaptureFixture
    ) -> None:
        controller = make_controller(settings, fake_db, StartupPolicy.DEGRADED)

        with caplog.at_level(logging.INFO):
            await controller.startup()
            assert controller.is_serving
            await controller._db_task

        assert controller.history == [
            ServerState.STARTING,
            ServerState.LISTENING,
            ServerState.DB_CONNECTING,
            ServerState.DB_CONNECTED,
        ]
        assert "Database connected" in caplog.text
        await controller.shutdown()

    async def test_database_failure_keeps_serving(
        self, settings: Settings, failing_db: Any, caplog: pytest.LogCaptureFixture
    ) -> None:
        controller = make_controller(settings, failing_db, StartupPolicy.DEGRADED)

        with caplog.at_level(logging.ERROR):
            await controller.startup()
            connected = await controller._db_task

        assert connected is False
        assert controller.state == ServerState.DB_FAILED
        assert controller.is_serving
        assert "Database failed" in caplog.text
        await controller.shutdown()
        assert controller.state == ServerState.TERMINATED


class TestShutdown:
    async def test_shutdown_is_idempotent(self, settings: Settings, fake_db: Any) -> None:
        controller = make_controller(settings, fake_db, StartupPolicy.FAIL_FAST)
        await controller.startup()

        await controller.shutdown()
        await controller.shutdown()

        assert controller.history[-2:] == [ServerState.SHUTTING_DOWN, ServerState.TERMINATED]
        assert fake_db.closed

    async def test_stops_maintenance_worker(
        self, settings_factory: Callable[..., Settings], fake_db: Any
    ) -> None:
        settings = settings_factory(maintenance={"enabled": True})
        controller = make_controller(settings, fake_db, StartupPolicy.FAIL_FAST)
        await controller.startup()
        assert controller.maintenance is not None

        await controller.shutdown()

        assert not controller.maintenance.is_running


class TestTransitions:
    def test_illegal_transition_raises(self, settings: Settings, fake_db: Any) -> None:
        controller = make_controller(settings, fake_db, StartupPolicy.FAIL_FAST)
        with pytest.raises(InvalidStateException):
            controller.transition(ServerState.TERMINATED)

    def test_status_snapshot(self, settings: Settings, fake_db: Any) -> None:
        controller = make_controller(settings, fake_db, StartupPolicy.DEGRADED)
        status = controller.status()
        assert status["state"] == "starting"
        assert status["policy"] == "degraded"
        assert status["database"] is False
        assert status["uptime_seconds"] is None


class TestLifespan:
    async def test_lifespan_publishes_state_and_shuts_down(
        self, settings: Settings, fake_db: Any
    ) -> None:
        controller = make_controller(settings, fake_db, StartupPolicy.FAIL_FAST)
        app = FastAPI()

        async with controller.lifespan(app):
            assert app.state.database is fake_db
            assert controller.state == ServerState.LISTENING

        assert controller.state == ServerState.TERMINATED

    async def test_lifespan_propagates_startup_error(
        self, settings: Settings, failing_db: Any
    ) -> None:
        controller = make_controller(settings, failing_db, StartupPolicy.FAIL_FAST)

        with pytest.raises(StartupError):
            async with controller.lifespan(FastAPI()):
                pytest.fail("lifespan must not yield after a failed startup")
