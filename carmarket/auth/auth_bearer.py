from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.auth.auth_handler import ACCESS_TOKEN_TYPE, decode_jwt
from carmarket.core.db import get_db
from carmarket.models.user import User
from carmarket.services.exceptions import AuthenticationError


class JWTBearer(HTTPBearer):
    """Extracts a bearer token and checks it is a valid, unexpired access token."""

    def __init__(self, auto_error: bool = True):
        # Missing credentials are reported by us as 401 rather than by HTTPBearer as 403
        super().__init__(auto_error=False)
        self.require_token = auto_error

    async def __call__(self, request: Request) -> dict | None:
        credentials: HTTPAuthorizationCredentials = await super().__call__(request)
        if not credentials or credentials.scheme.lower() != "bearer":
            if self.require_token:
                raise AuthenticationError("Missing or invalid authorization header")
            return None

        payload = decode_jwt(credentials.credentials)
        if not payload:
            raise AuthenticationError("Invalid or expired token")

        if payload.get("type") != ACCESS_TOKEN_TYPE:
            raise AuthenticationError("Access token required")

        request.state.user_id = payload.get("user_id")
        return payload


jwt_bearer = JWTBearer()


async def get_current_user(
    payload: dict = Depends(jwt_bearer),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the active user the access token was issued to."""
    user = (
        await db.execute(select(User).where(User.email == payload["sub"], User.is_active.is_(True)))
    ).scalar_one_or_none()

    if not user:
        raise AuthenticationError("User not found or inactive")

    return user
