"""
Signed identity tokens (HS256 JWT) carrying userId and email.

There is no revocation list; a token stops working only when it expires.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
from fastapi import Depends

from callisto.config import Settings, get_settings
from callisto.errors import UpstreamError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    email: str


class TokenService:
    def __init__(self, secret: str, expires_in: timedelta) -> None:
        if not secret:
            raise ValueError("Token secret must not be empty")
        self._secret = secret
        self._expires_in = expires_in

    def issue(self, claims: TokenClaims) -> str:
        now = datetime.now(timezone.utc)
        payload: dict[str, Any] = {
            "userId": claims.user_id,
            "email": claims.email,
            "iat": now,
            "exp": now + self._expires_in,
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> Optional[TokenClaims]:
        """Claims for a good token; None when expired, malformed or badly signed."""
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={"require": ["exp"]},
            )
        except jwt.ExpiredSignatureError:
            logger.debug("Rejected expired token")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning("JWT verification failed: %s", e)
            return None

        user_id = payload.get("userId")
        email = payload.get("email")
        if not isinstance(user_id, str) or not user_id:
            logger.warning("JWT missing userId claim")
            return None
        return TokenClaims(user_id=user_id, email=email if isinstance(email, str) else "")


def get_token_service(settings: Settings = Depends(get_settings)) -> TokenService:
    """Dependency: build the token service from the process-wide secret."""
    if not settings.jwt_secret:
        raise UpstreamError("Authentication not configured (JWT_SECRET is required).")
    return TokenService(settings.jwt_secret, timedelta(days=settings.jwt_expire_days))
