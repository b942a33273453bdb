"""Dependency injection for API endpoints.

Everything here reads from `request.state` (filled by the middleware chain) or
`request.app.state` (filled by create_app() and the lifespan). Nothing is
constructed per request except database sessions.
"""

import logging
from collections.abc import AsyncGenerator
from typing import Any, cast

from fastapi import HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from magical_music.config import Settings
from magical_music.domain.value_objects import Identity, StagedFile
from magical_music.infrastructure.lifecycle import LifecycleController
from magical_music.infrastructure.persistence import Database
from magical_music.infrastructure.realtime import RealtimeHub

logger = logging.getLogger(__name__)


def get_settings_dep(request: Request) -> Settings:
    """Settings the running app was built with (not the global cache)."""
    return cast(Settings, request.app.state.settings)


def get_lifecycle(request: Request) -> LifecycleController:
    return cast(LifecycleController, request.app.state.lifecycle)


def get_realtime_hub(request: Request) -> RealtimeHub:
    return cast(RealtimeHub, request.app.state.realtime)


def get_identity(request: Request) -> Identity | None:
    """Identity attached by AuthMiddleware, None for anonymous callers."""
    return cast(Identity | None, getattr(request.state, "identity", None))


# Hey future me - the auth middleware NEVER rejects; this is where protected routes
# get their 401. With no CLERK_JWT_KEY configured every caller is anonymous, so
# routes using this dependency are effectively closed.
def require_identity(request: Request) -> Identity:
    """Return the caller's identity or answer 401."""
    identity = get_identity(request)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


def get_uploaded_files(request: Request) -> dict[str, list[StagedFile]]:
    """Files staged by the upload middleware, keyed by form field."""
    return cast(dict[str, list[StagedFile]], getattr(request.state, "files", {}))


def get_form_fields(request: Request) -> dict[str, str]:
    """Plain (non-file) multipart fields."""
    return cast(dict[str, str], getattr(request.state, "form", {}))


def get_json_body(request: Request) -> Any:
    """JSON body decoded by the body-parsing middleware (None when absent)."""
    return getattr(request.state, "json", None)


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session from app state.

    Answers 503 while the database is not connected, which in degraded mode
    is how database-backed endpoints "fail on their own".
    """
    db = cast(Database | None, getattr(request.app.state, "database", None))
    if db is None or not db.is_connected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        )
    async for session in db.get_session():
        yield session
