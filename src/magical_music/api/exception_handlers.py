"""Custom exception handlers for FastAPI application.

This module registers global exception handlers that convert exceptions into
JSON responses shaped `{"message": ...}`, so clients see one error format.

Hey future me - the catch-all Exception handler is special in Starlette: it is
wired into ServerErrorMiddleware (the outermost layer), which sends our
response and THEN re-raises so uvicorn can log it too. The process never
crashes from a handler error either way. In tests use
TestClient(app, raise_server_exceptions=False) to see the 500 body.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from magical_music.config import Settings
from magical_music.domain.exceptions import DatabaseUnavailableError, UploadRejectedError

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Internal Server Error"


# Pydantic's exc.errors() can carry the raw body as bytes in 'input', which
# JSONResponse cannot serialize. Walk the structure and decode them.
def _sanitize_validation_errors(
    errors: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    def _sanitize_value(value: Any) -> Any:
        if isinstance(value, bytes):
            try:
                return value.decode("utf-8")
            except UnicodeDecodeError:
                return value.decode("latin-1")
        elif isinstance(value, dict):
            return {k: _sanitize_value(v) for k, v in value.items()}
        elif isinstance(value, list | tuple):
            return [_sanitize_value(item) for item in value]
        elif isinstance(value, Exception):
            return str(value)
        return value

    return [_sanitize_value(error) for error in errors]


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Register the global error boundary.

    - HTTPException -> its status code, `{"message": detail}`
    - RequestValidationError -> 422 with the sanitized pydantic errors
    - DatabaseUnavailableError -> 503
    - UploadRejectedError -> its status code
    - anything else -> 500; the raw error text is only exposed outside production

    Args:
        app: FastAPI application instance
        settings: decides whether error details are hidden (APP_ENV=production)
    """

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            "HTTP error %d at %s: %s",
            exc.status_code,
            request.url.path,
            exc.detail,
            extra={"path": request.url.path, "status_code": exc.status_code},
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        sanitized_errors = _sanitize_validation_errors(list(exc.errors()))
        logger.warning(
            "Request validation error at %s: %s",
            request.url.path,
            sanitized_errors,
            extra={"path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"message": "Validation failed", "errors": sanitized_errors},
        )

    @app.exception_handler(DatabaseUnavailableError)
    async def database_unavailable_handler(
        request: Request, exc: DatabaseUnavailableError
    ) -> JSONResponse:
        logger.error("Database unavailable at %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"message": "Database unavailable"},
        )

    @app.exception_handler(UploadRejectedError)
    async def upload_rejected_handler(
        request: Request, exc: UploadRejectedError
    ) -> JSONResponse:
        logger.info("Upload rejected at %s: %s", request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    # Hey future me - this is the "error boundary" for handler code. Production hides
    # the text because exception messages love to contain SQL, paths and tokens.
    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled error at %s %s: %s",
            request.method,
            request.url.path,
            exc,
            extra={"path": request.url.path},
        )
        message = GENERIC_ERROR_MESSAGE if settings.is_production else str(exc) or repr(exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": message},
        )
