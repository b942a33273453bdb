"""Identity verifiers used by the authentication middleware.

Two implementations behind one interface, chosen ONCE at startup by
select_verifier():

- JwtIdentityVerifier: a verification key is configured. Reads the token from
  `Authorization: Bearer <token>` or the session cookie and verifies it.
- AnonymousVerifier: no key configured. Never looks at the request; every
  request proceeds without an identity.

Neither rejects requests. A missing or invalid token simply means "no
identity"; handlers that need one use the require_identity dependency.
"""

import logging
from typing import Protocol

import jwt
from starlette.requests import HTTPConnection

from magical_music.config import AuthSettings
from magical_music.domain.value_objects import Identity

logger = logging.getLogger(__name__)


class IdentityVerifier(Protocol):
    """Resolves the identity behind a request, or None."""

    enabled: bool

    async def authenticate(self, connection: HTTPConnection) -> Identity | None: ...


class AnonymousVerifier:
    """Pass-through used when no verification key is configured."""

    enabled = False

    async def authenticate(self, connection: HTTPConnection) -> Identity | None:
        return None


def extract_token(connection: HTTPConnection, cookie_name: str) -> str | None:
    """Bearer token from the Authorization header, falling back to the session cookie."""
    raw = (connection.headers.get("authorization") or "").strip()
    if raw:
        scheme, _, token = raw.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return token.strip()
    cookie = (connection.cookies.get(cookie_name) or "").strip()
    return cookie or None


class JwtIdentityVerifier:
    """Verifies session JWTs against the configured public key or shared secret."""

    enabled = True

    def __init__(self, settings: AuthSettings) -> None:
        if not settings.jwt_key:
            raise ValueError("JwtIdentityVerifier needs a verification key")
        self._key = settings.jwt_key
        self._algorithms = settings.algorithms
        self._authorized_parties = frozenset(settings.authorized_parties)
        self._leeway = settings.leeway_seconds
        self._cookie_name = settings.session_cookie

    def decode(self, token: str) -> Identity | None:
        """Verify a token and build the identity; None when it is not acceptable."""
        try:
            claims = jwt.decode(
                token,
                self._key,
                algorithms=self._algorithms,
                leeway=self._leeway,
                options={"require": ["sub", "exp"], "verify_aud": False},
            )
        except jwt.InvalidTokenError as exc:
            logger.debug("Rejected session token: %s", exc)
            return None

        if self._authorized_parties:
            azp = claims.get("azp")
            if azp and azp not in self._authorized_parties:
                logger.debug("Rejected session token from unauthorized party %r", azp)
                return None

        return Identity.from_claims(claims)

    async def authenticate(self, connection: HTTPConnection) -> Identity | None:
        token = extract_token(connection, self._cookie_name)
        if token is None:
            return None
        return self.decode(token)


def select_verifier(settings: AuthSettings) -> IdentityVerifier:
    """Pick the verifier for this process based on whether a key is configured."""
    if settings.enabled:
        logger.info("Authentication enabled (algorithms=%s)", ",".join(settings.algorithms))
        return JwtIdentityVerifier(settings)
    logger.warning("No CLERK_JWT_KEY configured - authentication is disabled")
    return AnonymousVerifier()
