"""WebSocket hub for real-time presence and collaborator events.

Every frame is a JSON envelope:

    {"event": "update_activity", "data": {"userId": "u1", "activity": "Playing Song X"}}

Built-in events (presence):
    client → user_connected (data: user id)
        server → broadcast user_connected, reply users_online, broadcast activities
    client → update_activity (data: {"userId", "activity"})
        server → broadcast activity_updated
    socket closes
        server → broadcast user_disconnected

Collaborators (chat, playback sync, ...) register their own events with
hub.on("send_message"). A failing handler answers the sender with
message_error; the socket stays open.

Thread Safety:
    Designed for a single event loop. Not thread-safe.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import suppress
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)

EventHandler = Callable[["RealtimeHub", WebSocket, Any], Awaitable[None]]

IDLE_ACTIVITY = "Idle"


class RealtimeEnvelope(BaseModel):
    """One frame on the socket."""

    event: str
    data: Any = None


class RealtimeHub:
    """Tracks sockets, online users and their activities; routes events to handlers."""

    def __init__(self) -> None:
        self._sockets: set[WebSocket] = set()
        self._socket_users: dict[WebSocket, str] = {}
        self._user_sockets: dict[str, WebSocket] = {}
        self._activities: dict[str, str] = {}
        self._handlers: dict[str, EventHandler] = {
            "user_connected": _on_user_connected,
            "update_activity": _on_update_activity,
        }

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def on(self, event: str) -> Callable[[EventHandler], EventHandler]:
        """Register a handler for a client event (decorator)."""

        def decorator(handler: EventHandler) -> EventHandler:
            self._handlers[event] = handler
            return handler

        return decorator

    @property
    def online_users(self) -> list[str]:
        return list(self._user_sockets)

    @property
    def activities(self) -> dict[str, str]:
        return dict(self._activities)

    @property
    def connection_count(self) -> int:
        return len(self._sockets)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._sockets.add(websocket)
        logger.debug("Realtime socket connected (%d open)", len(self._sockets))

    def bind_user(self, websocket: WebSocket, user_id: str) -> None:
        """Associate a socket with a user. A user's newest socket wins."""
        self._socket_users[websocket] = user_id
        self._user_sockets[user_id] = websocket
        self._activities.setdefault(user_id, IDLE_ACTIVITY)

    def set_activity(self, user_id: str, activity: str) -> None:
        self._activities[user_id] = activity

    async def disconnect(self, websocket: WebSocket) -> None:
        self._sockets.discard(websocket)
        user_id = self._socket_users.pop(websocket, None)
        if user_id is None or self._user_sockets.get(user_id) is not websocket:
            return
        del self._user_sockets[user_id]
        self._activities.pop(user_id, None)
        logger.info("User %s went offline", user_id)
        await self.broadcast("user_disconnected", user_id)

    async def serve(self, websocket: WebSocket) -> None:
        """Accept a socket and dispatch its frames until it closes."""
        await self.connect(websocket)
        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    envelope = RealtimeEnvelope.model_validate_json(raw)
                except ValidationError:
                    await self.send(websocket, "error", {"message": "Malformed event frame"})
                    continue
                await self.dispatch(websocket, envelope)
        except WebSocketDisconnect:
            pass
        finally:
            await self.disconnect(websocket)

    async def dispatch(self, websocket: WebSocket, envelope: RealtimeEnvelope) -> None:
        handler = self._handlers.get(envelope.event)
        if handler is None:
            await self.send(websocket, "error", {"message": f"Unknown event: {envelope.event}"})
            return
        try:
            await handler(self, websocket, envelope.data)
        except Exception as e:
            logger.exception("Realtime handler for %r failed", envelope.event)
            await self.send(websocket, "message_error", {"event": envelope.event, "message": str(e)})

    async def close_all(self, code: int = 1001) -> None:
        """Close every socket (shutdown)."""
        for websocket in list(self._sockets):
            if websocket.application_state == WebSocketState.CONNECTED:
                with suppress(RuntimeError):
                    await websocket.close(code=code)
        self._sockets.clear()
        self._socket_users.clear()
        self._user_sockets.clear()
        self._activities.clear()

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def send(self, websocket: WebSocket, event: str, data: Any = None) -> bool:
        """Send one frame; False if the socket is gone."""
        try:
            await websocket.send_json({"event": event, "data": data})
        except (WebSocketDisconnect, RuntimeError):
            return False
        return True

    async def send_to_user(self, user_id: str, event: str, data: Any = None) -> bool:
        websocket = self._user_sockets.get(user_id)
        if websocket is None:
            return False
        return await self.send(websocket, event, data)

    async def broadcast(self, event: str, data: Any = None, exclude: WebSocket | None = None) -> None:
        """Send to every open socket concurrently, dropping dead ones."""
        targets = [ws for ws in self._sockets if ws is not exclude]
        if not targets:
            return
        results = await asyncio.gather(*(self.send(ws, event, data) for ws in targets))
        for websocket, delivered in zip(targets, results, strict=True):
            if not delivered:
                self._sockets.discard(websocket)


async def _on_user_connected(hub: RealtimeHub, websocket: WebSocket, data: Any) -> None:
    user_id = str(data or "").strip()
    if not user_id:
        raise ValueError("user_connected needs a user id")
    hub.bind_user(websocket, user_id)
    logger.info("User %s is online", user_id)
    await hub.broadcast("user_connected", user_id)
    await hub.send(websocket, "users_online", hub.online_users)
    await hub.broadcast("activities", [[uid, activity] for uid, activity in hub.activities.items()])


async def _on_update_activity(hub: RealtimeHub, websocket: WebSocket, data: Any) -> None:
    if not isinstance(data, dict) or not data.get("userId"):
        raise ValueError("update_activity needs userId and activity")
    user_id = str(data["userId"])
    activity = str(data.get("activity") or IDLE_ACTIVITY)
    if user_id not in hub.online_users:
        hub.bind_user(websocket, user_id)
    hub.set_activity(user_id, activity)
    await hub.broadcast("activity_updated", {"userId": user_id, "activity": activity})
