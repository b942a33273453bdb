"""Shared fixtures: isolated settings, a scriptable database and app factories."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from fastapi import FastAPI

from magical_music.config import Settings
from magical_music.domain.exceptions import DatabaseUnavailableError
from magical_music.main import create_app


class FakeDatabase:
    """Stands in for Database; connect() succeeds or fails on demand."""

    safe_url = "sqlite+aiosqlite:///fake.db"

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.connect_calls = 0
        self.closed = False
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.fail:
            raise DatabaseUnavailableError("Database unreachable: refused", url=self.safe_url)
        self._connected = True

    async def close(self) -> None:
        self.closed = True
        self._connected = False


@pytest.fixture
def settings_factory(tmp_path: Path) -> Callable[..., Settings]:
    """Settings rooted in tmp_path with maintenance off unless asked for."""

    def _build(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "app_env": "test",
            "uploads": {"temp_dir": tmp_path / "tmp"},
            "maintenance": {"enabled": False},
            "database": {"url": f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"},
        }
        values.update(overrides)
        return Settings(**values)

    return _build


@pytest.fixture
def settings(settings_factory: Callable[..., Settings]) -> Settings:
    return settings_factory()


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def failing_db() -> FakeDatabase:
    return FakeDatabase(fail=True)


@pytest.fixture
def make_app(settings_factory: Callable[..., Settings]) -> Callable[..., FastAPI]:
    """Factory: make_app(database=..., route_groups=..., verifier=..., **settings_overrides)."""

    def _make(
        database: Any = None,
        route_groups: Any = None,
        verifier: Any = None,
        **overrides: Any,
    ) -> FastAPI:
        return create_app(
            settings_factory(**overrides),
            database=database if database is not None else FakeDatabase(),
            route_groups=route_groups,
            verifier=verifier,
            configure_logs=False,
        )

    return _make
