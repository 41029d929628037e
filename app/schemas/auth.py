import uuid
from typing import Literal

from pydantic import BaseModel, EmailStr, Field

from app.core.config import settings


class UserBrief(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    role: str
    is_verified: bool
    avatar_url: str | None = None
    verification_status: str

    model_config = {"from_attributes": True}


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=settings.MIN_PASSWORD_LENGTH)
    role: Literal["seeker", "provider"] = "seeker"


class RegisterResponse(BaseModel):
    message: str = "Registration successful. Please check your email to verify your account."
    user: UserBrief


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    token: str
    refresh_token: str
    user: UserBrief


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class RefreshTokenResponse(BaseModel):
    token: str
    refresh_token: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=settings.MIN_PASSWORD_LENGTH)


class MessageResponse(BaseModel):
    message: str
