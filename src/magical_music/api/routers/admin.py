"""Admin endpoints. Every route here requires an authenticated caller."""

from typing import Any

from fastapi import APIRouter, Depends

from magical_music.api.dependencies import get_lifecycle, require_identity
from magical_music.infrastructure.lifecycle import LifecycleController

router = APIRouter(dependencies=[Depends(require_identity)])


@router.get("/status")
async def server_status(
    controller: LifecycleController = Depends(get_lifecycle),
) -> dict[str, Any]:
    """Lifecycle snapshot including maintenance statistics."""
    return controller.status()
