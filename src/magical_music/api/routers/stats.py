"""Live statistics."""

from typing import Any

from fastapi import APIRouter, Depends

from magical_music.api.dependencies import get_realtime_hub
from magical_music.infrastructure.realtime import RealtimeHub

router = APIRouter()


@router.get("")
async def live_stats(hub: RealtimeHub = Depends(get_realtime_hub)) -> dict[str, Any]:
    return {
        "onlineUsers": len(hub.online_users),
        "connections": hub.connection_count,
    }
