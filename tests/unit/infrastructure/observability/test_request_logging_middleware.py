"""Unit tests for RequestLoggingMiddleware."""

from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from magical_music.infrastructure.observability.middleware import RequestLoggingMiddleware


class TestRequestLoggingMiddleware:
    """Test suite for RequestLoggingMiddleware."""

    @pytest.fixture
    def app(self) -> FastAPI:
        app = FastAPI()
        app.add_middleware(RequestLoggingMiddleware)

        @app.get("/test")
        async def test_endpoint():
            return {"message": "test"}

        @app.get("/health")
        async def health():
            return "OK"

        @app.get("/error")
        async def error_endpoint():
            raise ValueError("Test error")

        return app

    @pytest.fixture
    def client(self, app: FastAPI) -> TestClient:
        return TestClient(app, raise_server_exceptions=False)

    def test_successful_request_logs_completion(self, client: TestClient):
        """Successful requests log one line with method, path, status and duration."""
        with patch("magical_music.infrastructure.observability.middleware.logger") as mock_logger:
            response = client.get("/test")

            assert response.status_code == 200
            assert mock_logger.info.call_count == 1
            log_message = mock_logger.info.call_args_list[0][0][0]
            assert "GET" in log_message
            assert "/test" in log_message
            assert "200" in log_message
            assert "ms" in log_message

    def test_health_probe_logged_at_debug(self, client: TestClient):
        with patch("magical_music.infrastructure.observability.middleware.logger") as mock_logger:
            client.get("/health")

            mock_logger.info.assert_not_called()
            assert mock_logger.debug.call_count == 1

    def test_request_with_correlation_id_header(self, client: TestClient):
        """The caller's correlation id is adopted and echoed back."""
        response = client.get("/test", headers={"X-Correlation-ID": "custom-correlation-id"})

        assert response.headers["X-Correlation-ID"] == "custom-correlation-id"

    def test_request_without_correlation_id_header(self, client: TestClient):
        with patch(
            "magical_music.infrastructure.observability.middleware.set_correlation_id"
        ) as mock_set_correlation_id:
            response = client.get("/test")

            assert response.status_code == 200
            mock_set_correlation_id.assert_called_once_with(None)
            assert "X-Correlation-ID" in response.headers

    def test_exception_logged_and_reraised(self, client: TestClient):
        with patch("magical_music.infrastructure.observability.middleware.logger") as mock_logger:
            response = client.get("/error")

            assert response.status_code == 500
            assert mock_logger.exception.call_count == 1
            log_message = mock_logger.exception.call_args[0][0]
            assert "FAILED" in log_message
            assert "/error" in log_message
