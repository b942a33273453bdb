"""Tests for the realtime presence hub over a real WebSocket."""

from collections.abc import Iterator
from typing import Any

import pytest
from fastapi import FastAPI, WebSocket
from fastapi.testclient import TestClient

from magical_music.infrastructure.realtime import RealtimeHub


@pytest.fixture
def hub() -> RealtimeHub:
    return RealtimeHub()


@pytest.fixture
def client(hub: RealtimeHub) -> Iterator[TestClient]:
    app = FastAPI()

    @app.websocket("/socket")
    async def socket(websocket: WebSocket) -> None:
        await hub.serve(websocket)

    # One portal for the whole test so every socket shares the hub's event loop.
    with TestClient(app) as client:
        yield client


def frame(event: str, data: Any = None) -> dict[str, Any]:
    return {"event": event, "data": data}


class TestPresence:
    def test_user_connected_announces_presence(self, hub: RealtimeHub, client: TestClient) -> None:
        with client.websocket_connect("/socket") as ws:
            ws.send_json(frame("user_connected", "user_1"))

            assert ws.receive_json() == frame("user_connected", "user_1")
            assert ws.receive_json() == frame("users_online", ["user_1"])
            assert ws.receive_json() == frame("activities", [["user_1", "Idle"]])
            assert hub.online_users == ["user_1"]

    def test_update_activity_broadcasts(self, hub: RealtimeHub, client: TestClient) -> None:
        with client.websocket_connect("/socket") as ws:
            ws.send_json(frame("update_activity", {"userId": "user_1", "activity": "Playing Song X"}))

            assert ws.receive_json() == frame(
                "activity_updated", {"userId": "user_1", "activity": "Playing Song X"}
            )
            assert hub.activities == {"user_1": "Playing Song X"}

    def test_disconnect_broadcasts_to_others(self, hub: RealtimeHub, client: TestClient) -> None:
        with client.websocket_connect("/socket") as watcher:
            watcher.send_json(frame("user_connected", "watcher"))
            for _ in range(3):
                watcher.receive_json()

            with client.websocket_connect("/socket") as leaver:
                leaver.send_json(frame("user_connected", "leaver"))
                for _ in range(3):
                    leaver.receive_json()
                # watcher sees the newcomer and the refreshed activities
                assert watcher.receive_json() == frame("user_connected", "leaver")
                assert watcher.receive_json()["event"] == "activities"

                # Close explicitly so the server sees the disconnect before the
                # session teardown cancels its task.
                leaver.close()
                assert watcher.receive_json() == frame("user_disconnected", "leaver")

            assert hub.online_users == ["watcher"]


class TestErrors:
    def test_unknown_event_answers_error(self, client: TestClient) -> None:
        with client.websocket_connect("/socket") as ws:
            ws.send_json(frame("dance"))
            reply = ws.receive_json()
            assert reply["event"] == "error"
            assert "dance" in reply["data"]["message"]

    def test_malformed_frame_answers_error(self, client: TestClient) -> None:
        with client.websocket_connect("/socket") as ws:
            ws.send_text("not json")
            assert ws.receive_json()["event"] == "error"

    def test_handler_failure_keeps_socket_open(self, hub: RealtimeHub, client: TestClient) -> None:
        @hub.on("send_message")
        async def explode(hub: RealtimeHub, websocket: WebSocket, data: Any) -> None:
            raise RuntimeError("storage down")

        with client.websocket_connect("/socket") as ws:
            ws.send_json(frame("send_message", {"text": "hi"}))
            assert ws.receive_json() == frame(
                "message_error", {"event": "send_message", "message": "storage down"}
            )
            # still usable afterwards
            ws.send_json(frame("user_connected", "user_1"))
            assert ws.receive_json()["event"] == "user_connected"


class TestDelivery:
    def test_send_to_user(self, hub: RealtimeHub, client: TestClient) -> None:
        @hub.on("ping_user")
        async def ping_user(hub: RealtimeHub, websocket: WebSocket, data: Any) -> None:
            await hub.send_to_user(data, "pinged", "hello")

        with client.websocket_connect("/socket") as ws:
            ws.send_json(frame("user_connected", "user_1"))
            for _ in range(3):
                ws.receive_json()
            ws.send_json(frame("ping_user", "user_1"))
            assert ws.receive_json() == frame("pinged", "hello")

    async def test_send_to_unknown_user(self, hub: RealtimeHub) -> None:
        assert await hub.send_to_user("ghost", "pinged") is False
