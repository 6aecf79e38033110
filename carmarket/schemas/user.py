import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from carmarket.models.user import UserRole


class UserRegisterSchema(BaseModel):
    email: EmailStr = Field(...)
    password: str = Field(..., min_length=6, max_length=128)
    role: UserRole = UserRole.BUYER

    @field_validator('role')
    def no_admin_signup(cls, v):
        if v == UserRole.ADMIN:
            raise ValueError("Role must be BUYER or DEALER")
        return v


class UserLoginSchema(BaseModel):
    email: EmailStr = Field(...)
    password: str = Field(..., min_length=1)


class RefreshTokenSchema(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class AuthResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    id: uuid.UUID
    email: str
    role: UserRole


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    role: UserRole
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserStatusUpdate(BaseModel):
    is_active: bool
