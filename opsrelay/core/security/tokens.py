"""
Token management for WebSocket authentication.

Verifies the JWTs issued by the back office's auth service and resolves them
to a Principal. create_access_token exists for the seed script and tests.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from opsrelay.core.config import settings
from opsrelay.core.websocket.errors import AuthenticationError

# Claim names the auth service has used for the user id over time
USER_ID_CLAIMS = ("user_id", "userId", "_id", "id")


@dataclass(frozen=True)
class Principal:
    """Authenticated caller resolved from a token."""
    user_id: str
    role: Optional[str] = None


class TokenVerifier:
    """Verifies bearer tokens against the shared secret."""

    def __init__(self, secret_key: Optional[str] = None, algorithm: Optional[str] = None) -> None:
        self.secret_key = secret_key or settings.secret_key
        self.algorithm = algorithm or settings.token_algorithm

    async def verify(self, token: str) -> Principal:
        """
        Decode token and return the Principal.

        Raises:
            AuthenticationError: token missing, malformed, expired or without a user id
        """
        if not token:
            raise AuthenticationError("Authentication required")
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            raise AuthenticationError("Invalid token") from e
        user_id = None
        for claim in USER_ID_CLAIMS:
            if payload.get(claim):
                user_id = payload[claim]
                break
        if not user_id:
            raise AuthenticationError("Invalid token")
        role = payload.get("role")
        return Principal(user_id=str(user_id), role=str(role) if role else None)


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None,
    secret_key: Optional[str] = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload data (should include user_id, optionally role)
        expires_delta: Optional expiration time delta
        secret_key: Signing key, defaults to settings.secret_key

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(hours=settings.token_expire_hours))
    to_encode.update({"exp": expire, "iat": now})
    return jwt.encode(to_encode, secret_key or settings.secret_key, algorithm=settings.token_algorithm)
