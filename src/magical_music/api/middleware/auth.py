"""Authentication step of the request pipeline.

The verifier is chosen once at startup (see select_verifier). This middleware
never rejects a request: it only attaches `state.identity`, which is None for
anonymous callers or when authentication is disabled. Works for HTTP and the
realtime WebSocket alike.
"""

from starlette.requests import HTTPConnection
from starlette.types import ASGIApp, Receive, Scope, Send

from magical_music.infrastructure.auth import IdentityVerifier


class AuthMiddleware:
    """Attach the caller's identity (or None) to the connection state."""

    def __init__(self, app: ASGIApp, verifier: IdentityVerifier) -> None:
        self.app = app
        self.verifier = verifier

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] in ("http", "websocket"):
            identity = await self.verifier.authenticate(HTTPConnection(scope))
            scope.setdefault("state", {})["identity"] = identity
        await self.app(scope, receive, send)
