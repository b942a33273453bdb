"""User endpoints."""

from typing import Any

from fastapi import APIRouter, Depends

from magical_music.api.dependencies import require_identity
from magical_music.domain.value_objects import Identity

router = APIRouter()


@router.get("/me")
async def get_current_user(identity: Identity = Depends(require_identity)) -> dict[str, Any]:
    """Return the authenticated caller."""
    return {"userId": identity.user_id, "sessionId": identity.session_id}
