"""
Bearer token verification.
Tokens are HS256 JWTs signed with the shared project secret; the user id is
carried in `sub`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from cac_web.domain.models import AuthUser

JWT_ALGORITHM = "HS256"


def bearer_token(header_value: Optional[str]) -> str:
    raw = (header_value or "").strip()
    if raw[:7].lower() == "bearer ":
        return raw[7:].strip()
    return ""


@dataclass(frozen=True)
class TokenVerifier:
    secret: str
    audience: Optional[str] = None

    def verify(self, token: str) -> Optional[AuthUser]:
        """
        Verify and decode a token.
        Returns None for anything that is not a valid, unexpired token with a user id.
        """
        token = (token or "").strip()
        if not token:
            return None

        options = {"verify_aud": bool(self.audience)}
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[JWT_ALGORITHM],
                audience=self.audience,
                options=options,
            )
        except jwt.InvalidTokenError:
            return None

        user_id = str(payload.get("sub") or payload.get("user_id") or "").strip()
        if not user_id:
            return None

        return AuthUser(id=user_id, email=str(payload.get("email") or ""))


def create_access_token(
    secret: str,
    user_id: str,
    email: str = "",
    audience: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Mint a token the verifier accepts. Used by tests and local tooling."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "iat": now,
        "exp": now + (expires_delta or timedelta(hours=1)),
    }
    if audience:
        payload["aud"] = audience

    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)
