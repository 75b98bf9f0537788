"""
Session Authentication for EduConnect.

Verifies HS256 JWT bearer tokens issued by the account service and exposes
the current principal. Account management itself lives elsewhere; this
backend only needs a stable user id.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"

# Optional Bearer token extractor (doesn't auto-raise on missing)
_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """The authenticated caller."""

    user_id: str
    username: str = ""
    role: str = "user"


class SessionAuthenticator:
    """Issues and verifies session tokens."""

    def __init__(self, secret: str, expiry_hours: int = 24):
        if not secret:
            raise ValueError("No JWT secret configured")
        self._secret = secret
        self._expiry_hours = expiry_hours

    def create_token(self, user_id: str, username: str = "", role: str = "user") -> dict:
        """Create a JWT token. Returns {token, expires_at}."""
        expires_at = time.time() + (self._expiry_hours * 3600)
        payload = {
            "sub": str(user_id),
            "username": username,
            "role": role,
            "iat": time.time(),
            "exp": expires_at,
        }
        token = jwt.encode(payload, self._secret, algorithm=JWT_ALGORITHM)
        return {
            "token": token,
            "expires_at": datetime.fromtimestamp(expires_at, tz=timezone.utc).isoformat(),
        }

    def verify_token(self, token: str) -> Optional[Principal]:
        """Verify a JWT token. Returns the principal or None."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[JWT_ALGORITHM])
        except jwt.ExpiredSignatureError:
            logger.debug("Rejected expired session token")
            return None
        except jwt.InvalidTokenError:
            return None

        user_id = payload.get("sub")
        if not user_id:
            return None
        return Principal(
            user_id=str(user_id),
            username=payload.get("username", ""),
            role=payload.get("role", "user"),
        )

    def current_user(self, request: Request) -> Optional[Principal]:
        """Principal for the request's bearer token, or None."""
        header = request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token:
            return None
        return self.verify_token(token.strip())


_authenticator: Optional[SessionAuthenticator] = None


def get_authenticator() -> SessionAuthenticator:
    """Get the singleton authenticator."""
    global _authenticator
    if _authenticator is None:
        from config import runtime_config

        _authenticator = SessionAuthenticator(runtime_config.jwt_secret, runtime_config.jwt_expiry_hours)
    return _authenticator


# =============================================================================
# FastAPI Dependencies
# =============================================================================


async def require_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Principal:
    """
    Auth dependency for any logged-in user.

    Raises:
        HTTPException 401 if auth fails
    """
    if credentials and credentials.credentials:
        principal = get_authenticator().verify_token(credentials.credentials)
        if principal:
            return principal
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    raise HTTPException(status_code=401, detail="Authentication required")
