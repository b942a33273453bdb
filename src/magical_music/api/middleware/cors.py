"""Cross-origin policy."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from magical_music.config import CorsSettings

logger = logging.getLogger(__name__)

# Matches every origin, which makes Starlette echo the caller's Origin back
# instead of "*" (browsers refuse "*" together with credentials).
ANY_ORIGIN_REGEX = r".*"


def add_cors_middleware(app: FastAPI, settings: CorsSettings) -> None:
    """Install the cross-origin policy.

    Without configured origins every origin is trusted WITH credentials. That
    keeps existing frontends working but lets any site make authenticated calls
    on behalf of a logged-in user; set CORS_ORIGINS in production.
    """
    if settings.reflects_any_origin:
        logger.warning("CORS reflects any origin with credentials; set CORS_ORIGINS to restrict")
        app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=ANY_ORIGIN_REGEX,
            allow_credentials=settings.allow_credentials,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        return

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origins,
        allow_credentials=settings.allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )
