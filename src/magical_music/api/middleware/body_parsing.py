"""JSON body parsing ahead of authentication, upload staging and handlers.

Reads `application/json` (and `+json`) bodies once, enforces a size cap and
rejects malformed JSON with 400 before anything downstream runs. The decoded
value lands on `request.state.json`; the raw bytes are replayed so FastAPI's
own body models still work.
"""

import json
import logging
from typing import Any

from starlette.datastructures import Headers
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)


def is_json_content(headers: Headers) -> bool:
    media_type = headers.get("content-type", "").split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


class JsonBodyMiddleware:
    """Pure ASGI middleware; the body must be buffered before replaying it."""

    def __init__(self, app: ASGIApp, limit: int = 100 * 1024) -> None:
        self.app = app
        self.limit = limit

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        if not is_json_content(headers):
            await self.app(scope, receive, send)
            return

        declared = headers.get("content-length", "")
        if declared.isdigit() and int(declared) > self.limit:
            await self._reject(scope, receive, send, 413, "Request body too large")
            return

        body = bytearray()
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                return
            body += message.get("body", b"")
            more_body = message.get("more_body", False)
            if len(body) > self.limit:
                await self._reject(scope, receive, send, 413, "Request body too large")
                return

        parsed: Any = None
        if body.strip():
            try:
                parsed = json.loads(body)
            except ValueError:
                await self._reject(scope, receive, send, 400, "Malformed JSON body")
                return
        scope.setdefault("state", {})["json"] = parsed

        replayed = False

        async def replay() -> Message:
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": bytes(body), "more_body": False}
            return await receive()

        await self.app(scope, replay, send)

    async def _reject(
        self, scope: Scope, receive: Receive, send: Send, status_code: int, message: str
    ) -> None:
        logger.info("Rejected JSON body on %s: %s", scope.get("path", ""), message)
        response = JSONResponse({"message": message}, status_code=status_code)
        await response(scope, receive, send)
