from datetime import datetime, timedelta, timezone

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.deps import parse_subject
from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    generate_token,
    hash_password,
    verify_password,
)
from app.models.user import User
from app.schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RefreshTokenRequest,
    RefreshTokenResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    UserBrief,
)
from app.services.mail import send_password_reset_email, send_verification_email

logger = structlog.get_logger()

router = APIRouter(prefix="/auth", tags=["Auth"])

FORGOT_PASSWORD_MESSAGE = "If an account with that email exists, a password reset link has been sent."


def _token_pair(user: User) -> tuple[str, str]:
    return create_access_token(str(user.id), user.role), create_refresh_token(str(user.id))


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register",
    description="Creates an unverified account and emails a verification link. Role is `seeker` or `provider`.",
)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    email = body.email.lower()
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User with this email already exists")

    user = User(
        name=body.name.strip(),
        email=email,
        password_hash=hash_password(body.password),
        role="admin" if email == settings.ADMIN_EMAIL.lower() else body.role,
        verification_token=generate_token(),
        images=[],
        videos=[],
        service_categories=[],
        service_areas=[],
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("user_registered", user_id=str(user.id), role=user.role)

    await send_verification_email(user.email, user.name, user.verification_token)

    return RegisterResponse(user=UserBrief.model_validate(user))


@router.get(
    "/verify",
    response_model=MessageResponse,
    summary="Verify email",
    description="Confirms the email address using the token from the verification link.",
)
async def verify_email(token: str = Query(..., min_length=1), db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.verification_token == token))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired verification token")

    user.is_verified = True
    user.verification_token = None
    await db.commit()
    logger.info("email_verified", user_id=str(user.id))
    return MessageResponse(message="Email verified successfully. You can now log in.")


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Log in",
    description="Email + password login. Returns an access `token`, a `refresh_token` and the user.",
)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.email == body.email.strip().lower()))
    user = result.scalar_one_or_none()
    if not user or not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    if not user.is_verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Please verify your email before logging in",
        )

    token, refresh = _token_pair(user)
    logger.info("user_logged_in", user_id=str(user.id))
    return LoginResponse(token=token, refresh_token=refresh, user=UserBrief.model_validate(user))


@router.post(
    "/refresh",
    response_model=RefreshTokenResponse,
    summary="Refresh tokens",
    description="Issues a new `token` + `refresh_token` pair for a valid refresh token.",
)
async def refresh_token(body: RefreshTokenRequest, db: AsyncSession = Depends(get_db)):
    user_id = parse_subject(decode_token(body.refresh_token), "refresh")
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    token, refresh = _token_pair(user)
    return RefreshTokenResponse(token=token, refresh_token=refresh)


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    summary="Request password reset",
    description="Always answers with the same message. When the account exists, a reset link valid for one hour is emailed.",
)
async def forgot_password(body: ForgotPasswordRequest, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.email == body.email.lower()))
    user = result.scalar_one_or_none()
    if user:
        user.reset_token = generate_token()
        user.reset_token_expires_at = datetime.now(timezone.utc) + timedelta(
            minutes=settings.RESET_TOKEN_EXPIRE_MINUTES
        )
        await db.commit()
        await send_password_reset_email(user.email, user.name, user.reset_token)
        logger.info("password_reset_requested", user_id=str(user.id))

    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    summary="Reset password",
    description="Sets a new password using a valid, unexpired reset token.",
)
async def reset_password(body: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(User).where(
            User.reset_token == body.token,
            User.reset_token_expires_at > datetime.now(timezone.utc),
        )
    )
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired reset token")

    user.password_hash = hash_password(body.password)
    user.reset_token = None
    user.reset_token_expires_at = None
    await db.commit()
    logger.info("password_reset", user_id=str(user.id))
    return MessageResponse(message="Password has been reset successfully.")
