"""Identity attached to a request by the authentication middleware."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Identity:
    """Verified caller identity.

    user_id comes from the token's `sub` claim, session_id from `sid`
    (present on session tokens, absent on machine tokens).
    """

    user_id: str
    session_id: str | None = None
    claims: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "Identity":
        """Build an identity from decoded token claims."""
        session_id = claims.get("sid")
        return cls(
            user_id=str(claims["sub"]),
            session_id=str(session_id) if session_id else None,
            claims=dict(claims),
        )
