from fastapi import APIRouter, Depends, Request, status

from carmarket.auth.auth_bearer import get_current_user
from carmarket.middleware.rate_limit import AUTH_LIMIT, limiter
from carmarket.models.user import User
from carmarket.routers.dependencies import get_user_service
from carmarket.schemas.common import MessageResponse
from carmarket.schemas.user import (
    AuthResponse,
    RefreshTokenSchema,
    UserLoginSchema,
    UserRegisterSchema,
    UserResponse,
)
from carmarket.services.user_service import UserService

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(AUTH_LIMIT)
async def register_user(request: Request, user: UserRegisterSchema, service: UserService = Depends(get_user_service)):
    new_user = await service.register_user(user)
    # return tokens after successful commit
    return service.auth_response(new_user)


@router.post("/login", response_model=AuthResponse)
@limiter.limit(AUTH_LIMIT)
async def login_user(request: Request, user: UserLoginSchema, service: UserService = Depends(get_user_service)):
    existing_user = await service.authenticate(user.email, user.password)
    return service.auth_response(existing_user)


@router.post("/refresh", response_model=AuthResponse)
@limiter.limit(AUTH_LIMIT)
async def refresh_token(request: Request, payload: RefreshTokenSchema, service: UserService = Depends(get_user_service)):
    return await service.refresh(payload.refresh_token)


@router.post("/logout", response_model=MessageResponse)
async def logout_user(user: User = Depends(get_current_user)):
    # Tokens are stateless; the client drops them
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserResponse)
async def read_current_user(user: User = Depends(get_current_user)):
    return user
