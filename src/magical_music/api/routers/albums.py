"""Album endpoints."""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from magical_music.api.dependencies import get_db_session

router = APIRouter()


@router.get("/ping")
async def albums_store_ping(session: AsyncSession = Depends(get_db_session)) -> dict[str, Any]:
    """Round-trip to the database backing the album catalog."""
    result = await session.execute(text("SELECT 1"))
    return {"database": result.scalar_one() == 1}
