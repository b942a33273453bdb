"""Listener bootstrap: one ASGI app serving plain HTTP and the realtime socket.

uvicorn binds a single port for the app, so HTTP routes and the WebSocket hub
multiplex the same listener. Both functions here must run before the server
starts accepting connections (create_app() calls them at import time of the
ASGI app, uvicorn binds only after the lifespan startup succeeds).
"""

import logging

from fastapi import FastAPI, WebSocket

from magical_music import __version__
from magical_music.config import Settings
from magical_music.infrastructure.lifecycle import LifecycleController
from magical_music.infrastructure.realtime import RealtimeHub

logger = logging.getLogger(__name__)


def create_listener(settings: Settings, controller: LifecycleController) -> FastAPI:
    """Create the ASGI app whose lifespan is driven by the lifecycle controller."""
    app = FastAPI(
        title="Magical Music API",
        version=__version__,
        lifespan=controller.lifespan,
        debug=False,
    )
    app.state.settings = settings
    app.state.lifecycle = controller
    return app


def attach_realtime(app: FastAPI, settings: Settings) -> RealtimeHub:
    """Mount the realtime hub on the listener's WebSocket path."""
    hub = RealtimeHub()

    async def realtime_endpoint(websocket: WebSocket) -> None:
        await hub.serve(websocket)

    app.add_api_websocket_route(settings.realtime.path, realtime_endpoint, name="realtime")
    app.state.realtime = hub
    logger.debug("Realtime hub attached at %s", settings.realtime.path)
    return hub
