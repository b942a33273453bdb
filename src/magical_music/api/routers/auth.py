"""Session inspection.

Account management lives with the identity provider; this group only reports
what the auth middleware resolved for the current request.
"""

from typing import Any

from fastapi import APIRouter, Depends

from magical_music.api.dependencies import get_identity
from magical_music.domain.value_objects import Identity

router = APIRouter()


@router.get("/session")
async def current_session(identity: Identity | None = Depends(get_identity)) -> dict[str, Any]:
    if identity is None:
        return {"authenticated": False, "userId": None}
    return {"authenticated": True, "userId": identity.user_id}
