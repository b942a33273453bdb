"""API router initialization.

Hey future me, this is the route table! ROUTE_GROUPS maps each URL prefix to
its handler-group router. create_app() takes an optional replacement mapping
so tests can inject stub routers for any group. The health router (/, /health,
/health/ready) is always mounted at the root and is not part of the table.
"""

from fastapi import APIRouter, FastAPI

from magical_music.api.routers import admin, albums, auth, health, songs, stats, users

ROUTE_GROUPS: dict[str, APIRouter] = {
    "/api/users": users.router,
    "/api/admin": admin.router,
    "/api/auth": auth.router,
    "/api/songs": songs.router,
    "/api/albums": albums.router,
    "/api/stats": stats.router,
}


def register_routes(app: FastAPI, groups: dict[str, APIRouter] | None = None) -> None:
    """Mount the handler groups and the health endpoints."""
    app.include_router(health.router)
    for prefix, router in (groups if groups is not None else ROUTE_GROUPS).items():
        tag = prefix.rsplit("/", 1)[-1].capitalize()
        app.include_router(router, prefix=prefix, tags=[tag])


__all__ = ["ROUTE_GROUPS", "register_routes"]
