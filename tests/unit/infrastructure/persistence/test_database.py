"""Tests for the Database startup probe."""

from pathlib import Path

import pytest
from sqlalchemy import text

from magical_music.config import DatabaseSettings
from magical_music.domain.exceptions import DatabaseUnavailableError
from magical_music.infrastructure.persistence import Database

class TestConnect:
    async def test_probe_succeeds_on_sqlite(self, tmp_path: Path) -> None:
        db = Database(DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'ok.db'}"))
        try:
            await db.connect()
            assert db.is_connected
        finally:
            await db.close()
        assert not db.is_connected

    async def test_unreachable_database_raises(self, tmp_path: Path) -> None:
        missing_dir = tmp_path / "does" / "not" / "exist"
        db = Database(DatabaseSettings(url=f"sqlite+aiosqlite:///{missing_dir / 'x.db'}"))
        try:
            with pytest.raises(DatabaseUnavailableError) as exc_info:
                await db.connect()
        finally:
            await db.close()
        assert not db.is_connected
        assert exc_info.value.url is not None


class TestSessions:
    async def test_session_scope_executes(self, tmp_path: Path) -> None:
        db = Database(DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 's.db'}"))
        try:
            async with db.session_scope() as session:
                result = await session.execute(text("SELECT 1"))
                assert result.scalar_one() == 1
        finally:
            await db.close()
