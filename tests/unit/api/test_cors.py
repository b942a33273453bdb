"""Tests for the cross-origin policy."""

from collections.abc import Callable

from fastapi import FastAPI
from fastapi.testclient import TestClient


class TestReflectAnyOrigin:
    def test_simple_request_reflects_origin(self, make_app: Callable[..., FastAPI]) -> None:
        client = TestClient(make_app())

        response = client.get("/", headers={"Origin": "https://music.example.com"})

        assert response.headers["access-control-allow-origin"] == "https://music.example.com"
        assert response.headers["access-control-allow-credentials"] == "true"

    def test_preflight_answered(self, make_app: Callable[..., FastAPI]) -> None:
        client = TestClient(make_app())

        response = client.options(
            "/api/songs",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "authorization",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


class TestConfiguredOrigins:
    def test_unlisted_origin_not_reflected(self, make_app: Callable[..., FastAPI]) -> None:
        client = TestClient(make_app(cors={"origins": ["https://app.example.com"]}))

        allowed = client.get("/", headers={"Origin": "https://app.example.com"})
        denied = client.get("/", headers={"Origin": "https://evil.example.com"})

        assert allowed.headers["access-control-allow-origin"] == "https://app.example.com"
        assert "access-control-allow-origin" not in denied.headers
