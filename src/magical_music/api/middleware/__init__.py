"""Request middleware chain.

Hey future me - Starlette's add_middleware() PREPENDS, so the LAST middleware
added runs FIRST. install_middleware_chain() therefore adds them innermost
first. The resulting order for every request (outermost -> innermost) is:

    request logging -> timeout -> CORS -> JSON body -> auth -> upload staging -> route

Do not reorder: CORS must answer preflights before any body is read, the JSON
cap must run before auth, and uploads must see the identity already attached.
"""

import logging

from fastapi import FastAPI

from magical_music.api.middleware.auth import AuthMiddleware
from magical_music.api.middleware.body_parsing import JsonBodyMiddleware
from magical_music.api.middleware.cors import add_cors_middleware
from magical_music.api.middleware.timeout import RequestTimeoutMiddleware
from magical_music.api.middleware.uploads import UploadStagingMiddleware
from magical_music.config import Settings
from magical_music.infrastructure.auth import IdentityVerifier, select_verifier
from magical_music.infrastructure.observability import RequestLoggingMiddleware
from magical_music.infrastructure.storage import TempUploadDirectory

logger = logging.getLogger(__name__)


def install_middleware_chain(
    app: FastAPI,
    settings: Settings,
    temp_dir: TempUploadDirectory,
    verifier: IdentityVerifier | None = None,
) -> IdentityVerifier:
    """Install the request pipeline and return the verifier in use.

    The verifier is selected once here; passing one in overrides the choice.
    """
    if verifier is None:
        verifier = select_verifier(settings.auth)

    app.add_middleware(
        UploadStagingMiddleware,
        temp_dir=temp_dir,
        max_file_size=settings.uploads.max_file_size,
        timeout=settings.uploads.timeout,
    )
    app.add_middleware(AuthMiddleware, verifier=verifier)
    app.add_middleware(JsonBodyMiddleware, limit=settings.api.json_body_limit)
    add_cors_middleware(app, settings.cors)
    if settings.api.request_timeout > 0:
        app.add_middleware(
            RequestTimeoutMiddleware,
            timeout=settings.api.request_timeout,
            upload_timeout=settings.uploads.timeout,
        )
    app.add_middleware(RequestLoggingMiddleware)

    logger.debug(
        "Middleware chain installed (auth=%s)",
        "enabled" if verifier.enabled else "disabled",
    )
    return verifier


__all__ = [
    "AuthMiddleware",
    "JsonBodyMiddleware",
    "RequestTimeoutMiddleware",
    "UploadStagingMiddleware",
    "add_cors_middleware",
    "install_middleware_chain",
]
