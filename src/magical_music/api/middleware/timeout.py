"""Per-request timeout."""

import asyncio
import logging

from starlette.datastructures import Headers
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)


class RequestTimeoutMiddleware:
    """Answer 504 when a request takes longer than its budget.

    Multipart uploads get the upload timeout on top of the request timeout,
    since the staging step alone may legitimately use the whole upload budget.
    Once the response has started there is nothing sensible left to send, so a
    late timeout only cancels the handler.
    """

    def __init__(self, app: ASGIApp, timeout: float, upload_timeout: float = 0.0) -> None:
        self.app = app
        self.timeout = timeout
        self.upload_timeout = upload_timeout

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        budget = self.timeout
        if Headers(scope=scope).get("content-type", "").startswith("multipart/form-data"):
            budget += self.upload_timeout

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        deadline = asyncio.timeout(budget)
        try:
            async with deadline:
                await self.app(scope, receive, send_wrapper)
        except TimeoutError:
            # A TimeoutError raised by the handler itself is not ours to answer.
            if not deadline.expired():
                raise
            logger.warning(
                "Request timed out after %.0fs: %s %s",
                budget,
                scope.get("method", ""),
                scope.get("path", ""),
            )
            if response_started:
                return
            response = JSONResponse({"message": "Request timed out"}, status_code=504)
            await response(scope, receive, send)
