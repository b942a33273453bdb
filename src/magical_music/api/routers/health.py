# Hey future me - these are the probes platforms poll!
#
# Endpoints:
# - /              -> greeting, plain text (doubles as "is it up" for humans)
# - /health        -> liveness, plain text "OK", NEVER looks at the database
# - /health/ready  -> readiness JSON, 503 until the database is connected
#
# In degraded mode a dead database keeps /health at 200 (the process is alive
# and serving) while /health/ready says 503 so load balancers can route away.
"""Health check endpoints."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field

from magical_music.api.dependencies import get_lifecycle, get_settings_dep
from magical_music.config import Settings
from magical_music.infrastructure.lifecycle import LifecycleController

router = APIRouter(tags=["Health"])


class ReadinessStatus(BaseModel):
    """Readiness probe response."""

    status: str = Field(description="ready or not_ready")
    timestamp: str = Field(description="ISO timestamp")
    state: str = Field(description="Server process state")
    policy: str = Field(description="Startup policy in effect")
    database: bool = Field(description="Database connection OK")
    uptime_seconds: float | None = Field(default=None, description="Seconds since startup")


@router.get("/", response_class=PlainTextResponse)
async def root(settings: Settings = Depends(get_settings_dep)) -> str:
    return settings.greeting


@router.get("/health", response_class=PlainTextResponse)
async def liveness_probe() -> str:
    """Liveness: 200 whenever the process answers HTTP."""
    return "OK"


@router.get("/health/ready", response_model=ReadinessStatus)
async def readiness_probe(
    controller: LifecycleController = Depends(get_lifecycle),
) -> JSONResponse:
    """Readiness: 200 when serving with a connected database, 503 otherwise."""
    snapshot = controller.status()
    ready = bool(snapshot["serving"] and snapshot["database"])
    body = ReadinessStatus(
        status="ready" if ready else "not_ready",
        timestamp=datetime.now(UTC).isoformat(),
        state=snapshot["state"],
        policy=snapshot["policy"],
        database=snapshot["database"],
        uptime_seconds=snapshot["uptime_seconds"],
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body.model_dump(),
    )
