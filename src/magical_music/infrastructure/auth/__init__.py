"""Token verification."""

from magical_music.infrastructure.auth.verifier import (
    AnonymousVerifier,
    IdentityVerifier,
    JwtIdentityVerifier,
    extract_token,
    select_verifier,
)

__all__ = [
    "AnonymousVerifier",
    "IdentityVerifier",
    "JwtIdentityVerifier",
    "extract_token",
    "select_verifier",
]
