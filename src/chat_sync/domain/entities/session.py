from __future__ import annotations

from dataclasses import dataclass

import jwt


@dataclass(frozen=True, slots=True)
class Session:
    """Authenticated session, owned by the auth collaborator and read-only here."""

    current_user_id: int
    auth_token: str
    username: str | None = None
    avatar_ref: str | None = None

    @classmethod
    def from_token(cls, token: str) -> Session:
        """Build a session from a bearer JWT.

        The signature is not checked: the server verifies every request, the
        client only needs to know who it is.
        """
        claims = jwt.decode(token, options={"verify_signature": False})
        return cls(
            current_user_id=int(claims["sub"]),
            auth_token=token,
            username=claims.get("username") or claims.get("name"),
            avatar_ref=claims.get("avatar"),
        )

    def __repr__(self) -> str:
        return f"Session(current_user_id={self.current_user_id}, username={self.username!r})"
