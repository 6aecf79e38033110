import logging
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.auth.auth_handler import decode_jwt, refresh_access_token, sign_jwt
from carmarket.auth.passwords_handler import hash_password_async, verify_password_async
from carmarket.core.config import JWT_ACCESS_EXP_SECONDS
from carmarket.core.metrics import track_performance
from carmarket.models.user import User, UserRole
from carmarket.schemas.user import AuthResponse, UserRegisterSchema
from carmarket.services.exceptions import AuthenticationError, DuplicateEmailError
from carmarket.services.validators import BusinessRules

logger = logging.getLogger(__name__)


class UserService:
    """Registration, credential checks and token issuing."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return (await self.db.execute(select(User).where(User.email == email))).scalar_one_or_none()

    async def create_user(self, email: str, password: str, role: UserRole) -> User:
        """Stage a new user in the session. The caller commits."""
        if await self.get_user_by_email(email):
            raise DuplicateEmailError(f"Email already registered: {email}", "DUPLICATE_EMAIL")

        user = User(
            id=uuid.uuid4(),
            email=email,
            password_hash=await hash_password_async(password),
            role=role,
            is_active=True,
        )
        self.db.add(user)
        return user

    @track_performance(service_name="UserService")
    async def register_user(self, request: UserRegisterSchema) -> User:
        BusinessRules.validate_self_registration_role(request.role)
        user = await self.create_user(request.email, request.password, request.role)

        try:
            await self.db.commit()
        except IntegrityError:
            # Another request registered the same email between check and commit
            await self.db.rollback()
            raise DuplicateEmailError(f"Email already registered: {request.email}", "DUPLICATE_EMAIL")

        logger.info(f"User registered: {user.email} ({user.role.value})")
        return user

    @track_performance(service_name="UserService")
    async def authenticate(self, email: str, password: str) -> User:
        user = await self.get_user_by_email(email)
        if not user or not await verify_password_async(password, user.password_hash):
            logger.info(f"Failed login attempt for {email}")
            raise AuthenticationError("Invalid email or password")

        if not user.is_active:
            logger.info(f"Login attempt for deactivated account {email}")
            raise AuthenticationError("Account is deactivated")

        return user

    @staticmethod
    def auth_response(user: User) -> AuthResponse:
        tokens = sign_jwt(str(user.id), user.email, user.role.value)
        return AuthResponse(
            access_token=tokens["access_token"],
            refresh_token=tokens["refresh_token"],
            expires_in=JWT_ACCESS_EXP_SECONDS,
            id=user.id,
            email=user.email,
            role=user.role,
        )

    async def refresh(self, refresh_token: str) -> AuthResponse:
        access_token = refresh_access_token(refresh_token)
        payload = decode_jwt(refresh_token)

        user = await self.get_user_by_email(payload["sub"])
        if not user or not user.is_active:
            raise AuthenticationError("User not found or inactive")

        return AuthResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=JWT_ACCESS_EXP_SECONDS,
            id=user.id,
            email=user.email,
            role=user.role,
        )
