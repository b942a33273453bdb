"""Application entry point.

Hey future me - create_app() is the ONE place that composes the process, and
the order below is the startup contract:

    lifecycle controller -> listener -> realtime hub -> middleware chain
    -> route table -> error boundary

All of that happens before uvicorn binds. The lifespan (owned by the
controller) then configures logging, starts maintenance and connects the
database in the order the startup policy asks for.

Run it with `magical-music` (see run() below) or
`uvicorn magical_music.main:create_app --factory`.
"""

import logging
import sys

import uvicorn
from fastapi import APIRouter, FastAPI

from magical_music.api.exception_handlers import register_exception_handlers
from magical_music.api.middleware import install_middleware_chain
from magical_music.api.routers import register_routes
from magical_music.config import Settings, get_settings
from magical_music.infrastructure.auth import IdentityVerifier
from magical_music.infrastructure.lifecycle import LifecycleController
from magical_music.infrastructure.listener import attach_realtime, create_listener
from magical_music.infrastructure.persistence import Database

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    database: Database | None = None,
    route_groups: dict[str, APIRouter] | None = None,
    verifier: IdentityVerifier | None = None,
    configure_logs: bool = True,
) -> FastAPI:
    """Build the fully wired ASGI application.

    Args:
        settings: defaults to the cached environment settings
        database: override the database (tests pass a stub)
        route_groups: replace the prefix -> router table
        verifier: override the identity verifier chosen from settings
        configure_logs: let the lifespan reconfigure the root logger
    """
    settings = settings or get_settings()
    controller = LifecycleController(settings, database=database, configure_logs=configure_logs)

    app = create_listener(settings, controller)
    attach_realtime(app, settings)
    app.state.verifier = install_middleware_chain(
        app, settings, controller.temp_dir, verifier=verifier
    )
    register_routes(app, route_groups)
    register_exception_handlers(app, settings)
    return app


def run() -> None:
    """Serve the app with uvicorn and exit non-zero when startup fails.

    uvicorn only binds after the lifespan startup succeeded. When it did not
    (fail-fast policy with an unreachable database, port already in use),
    server.started stays False and we exit with status 1.
    """
    settings = get_settings()
    app = create_app(settings)
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=settings.server.host,
            port=settings.server.port,
            lifespan="on",
            log_config=None,
        )
    )
    server.run()
    if not server.started:
        logger.critical("Server failed to start; exiting")
        sys.exit(1)


if __name__ == "__main__":
    run()
