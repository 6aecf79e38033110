import logging
import time
from typing import Dict

import jwt

from carmarket.core.config import (
    JWT_ACCESS_EXP_SECONDS,
    JWT_ALGORITHM,
    JWT_REFRESH_EXP_SECONDS,
    JWT_SECRET,
)
from carmarket.services.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def ensure_jwt_secret() -> None:
    """Refuse to start without a signing secret."""
    if not JWT_SECRET:
        raise RuntimeError("JWT_SECRET is not set; refusing to issue or accept tokens")


def _create_token(claims: Dict, subject: str, expires_in: int) -> str:
    now = int(time.time())
    payload = {
        **claims,
        "sub": subject,
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def sign_access_token(user_id: str, email: str, role: str) -> str:
    """Generate a short-lived access token for a user."""
    claims = {"user_id": user_id, "role": role, "type": ACCESS_TOKEN_TYPE}
    return _create_token(claims, email, JWT_ACCESS_EXP_SECONDS)


def sign_refresh_token(user_id: str, email: str, role: str) -> str:
    """Generate a long-lived refresh token for a user."""
    claims = {"user_id": user_id, "role": role, "type": REFRESH_TOKEN_TYPE}
    return _create_token(claims, email, JWT_REFRESH_EXP_SECONDS)


def sign_jwt(user_id: str, email: str, role: str) -> Dict[str, str]:
    """Generate both access and refresh tokens."""
    return {
        "access_token": sign_access_token(user_id, email, role),
        "refresh_token": sign_refresh_token(user_id, email, role),
    }


def decode_jwt(token: str) -> dict:
    """Decode a JWT token and return the payload if signature and expiry are valid, else None."""
    try:
        return jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        logger.info("JWT token is expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.info(f"Invalid JWT token: {e}")
        return None


def validate_token(token: str, email: str, token_type: str = ACCESS_TOKEN_TYPE) -> bool:
    """True when the token is valid, of the expected type and issued to the given e-mail."""
    payload = decode_jwt(token)
    if not payload:
        return False
    return payload.get("sub") == email and payload.get("type") == token_type


def refresh_access_token(refresh_token: str) -> str:
    """Mint a new access token from a valid refresh token. Access tokens are rejected."""
    payload = decode_jwt(refresh_token)
    if not payload:
        raise AuthenticationError("Invalid refresh token")

    if payload.get("type") != REFRESH_TOKEN_TYPE:
        logger.warning("Refresh attempted with a non-refresh token")
        raise AuthenticationError("Invalid token type for refresh")

    return sign_access_token(payload.get("user_id"), payload["sub"], payload.get("role"))
