import logging
from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
import jwt

from smartlife.api import deps
from smartlife.core import security
from smartlife.core.config import settings
from smartlife.core.errors import APIError
from smartlife.database import get_db
from smartlife.models.common import Envelope, MessageResponse
from smartlife.models.user import User, UserCreate, UserLogin, UserRead

logger = logging.getLogger(__name__)

router = APIRouter()


class AuthData(BaseModel):
    user: UserRead
    token: str
    refreshToken: str


class TokenData(BaseModel):
    token: str


class UserData(BaseModel):
    user: UserRead


class RefreshRequest(BaseModel):
    refreshToken: Optional[str] = None


class PasswordUpdateRequest(BaseModel):
    currentPassword: str
    newPassword: str = Field(min_length=6, max_length=128)


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=6, max_length=128)


def _set_auth_cookies(response: Response, access_token: str, refresh_token: Optional[str] = None) -> None:
    response.set_cookie(
        key=deps.ACCESS_COOKIE,
        value=access_token,
        httponly=True,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        samesite="lax",
        secure=settings.COOKIE_SECURE
    )
    if refresh_token:
        response.set_cookie(
            key=deps.REFRESH_COOKIE,
            value=refresh_token,
            httponly=True,
            max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
            samesite="lax",
            secure=settings.COOKIE_SECURE
        )


def _issue_tokens(response: Response, user: User) -> dict:
    access_token = security.create_access_token(subject=user.id, email=user.email)
    refresh_token = security.create_refresh_token(subject=user.id)
    _set_auth_cookies(response, access_token, refresh_token)
    return {"user": user, "token": access_token, "refreshToken": refresh_token}


@router.post("/register", response_model=Envelope[AuthData], status_code=status.HTTP_201_CREATED)
async def register(
    response: Response,
    user_in: UserCreate,
    db: AsyncSession = Depends(get_db)
) -> Any:
    # 1. Check existing
    result = await db.execute(select(User).where(User.email == user_in.email))
    if result.scalars().first():
        raise APIError(400, "User already exists with this email", "USER_EXISTS", field="email")

    # 2. Create User
    user = User(
        email=user_in.email,
        name=user_in.name,
        password=security.get_password_hash(user_in.password),
        lastLogin=datetime.utcnow(),
        loginCount=1,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info(f"Registered user {user.id}")

    # 3. Login immediately
    return {
        "message": "User registered successfully",
        "data": _issue_tokens(response, user),
    }


@router.post("/login", response_model=Envelope[AuthData])
async def login(
    response: Response,
    login_data: UserLogin,
    db: AsyncSession = Depends(get_db)
) -> Any:
    result = await db.execute(select(User).where(User.email == login_data.email))
    user = result.scalars().first()

    # same answer for unknown email, bad password and inactive account
    if not user or not user.isActive or not security.verify_password(login_data.password, user.password):
        logger.info(f"Failed login for {login_data.email}")
        raise APIError(401, "Invalid credentials", "INVALID_CREDENTIALS")

    user.lastLogin = datetime.utcnow()
    user.loginCount = (user.loginCount or 0) + 1
    db.add(user)
    await db.commit()
    await db.refresh(user)

    return {
        "message": "Login successful",
        "data": _issue_tokens(response, user),
    }


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response) -> Any:
    response.delete_cookie(key=deps.ACCESS_COOKIE)
    response.delete_cookie(key=deps.REFRESH_COOKIE)
    return {"message": "Logged out successfully"}


@router.post("/refresh", response_model=Envelope[TokenData])
async def refresh_token(
    request: Request,
    response: Response,
    body: Optional[RefreshRequest] = None,
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    Exchange a refresh token (body or ``refresh_token`` cookie) for a new
    access token.
    """
    token = (body.refreshToken if body else None) or request.cookies.get(deps.REFRESH_COOKIE)
    if not token:
        raise APIError(401, "Refresh token required", "NO_TOKEN")

    try:
        payload = security.decode_token(token)
    except jwt.ExpiredSignatureError:
        raise APIError(401, "Refresh token expired", "TOKEN_EXPIRED")
    except jwt.InvalidTokenError:
        raise APIError(401, "Invalid refresh token", "INVALID_TOKEN")

    if payload.get("type") != security.REFRESH_TOKEN_TYPE:
        raise APIError(401, "Invalid token type", "INVALID_TOKEN_TYPE")

    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError:
        raise APIError(401, "Invalid refresh token", "INVALID_TOKEN")

    user = await db.get(User, user_id)
    if not user or not user.isActive:
        raise APIError(401, "User not found", "USER_NOT_FOUND")

    access_token = security.create_access_token(subject=user.id, email=user.email)
    _set_auth_cookies(response, access_token)
    return {"message": "Token refreshed", "data": {"token": access_token}}


@router.get("/me", response_model=Envelope[UserData])
async def read_users_me(
    current_user: User = Depends(deps.get_current_user)
) -> Any:
    return {"data": {"user": current_user}}


@router.post("/update-password", response_model=MessageResponse)
async def update_password(
    password_data: PasswordUpdateRequest,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    # 1. Verify current password
    if not security.verify_password(password_data.currentPassword, current_user.password):
        raise APIError(400, "Current password is incorrect", "INVALID_PASSWORD", field="currentPassword")

    # 2. Update password
    current_user.password = security.get_password_hash(password_data.newPassword)
    current_user.updatedAt = datetime.utcnow()
    db.add(current_user)
    await db.commit()

    return {"message": "Password updated successfully"}


@router.post("/forgot-password", response_model=Envelope[dict])
async def forgot_password(
    body: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    Always answers with the same message so the endpoint can't be used to
    probe for registered addresses.
    """
    email = body.email.strip().lower()
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalars().first()

    data = {}
    if user and user.isActive:
        raw, digest = security.generate_reset_token()
        user.resetPasswordToken = digest
        user.resetPasswordExpires = datetime.utcnow() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES)
        db.add(user)
        await db.commit()
        logger.info(f"Password reset requested for user {user.id}")
        # no mail delivery; expose the token only while developing
        if settings.is_development:
            data["resetToken"] = raw

    return {
        "message": "If an account exists for that email, a password reset link has been sent",
        "data": data,
    }


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db)
) -> Any:
    digest = security.hash_reset_token(body.token)
    result = await db.execute(select(User).where(User.resetPasswordToken == digest))
    user = result.scalars().first()

    if not user or not user.resetPasswordExpires or user.resetPasswordExpires < datetime.utcnow():
        raise APIError(400, "Invalid or expired reset token", "INVALID_RESET_TOKEN")

    user.password = security.get_password_hash(body.password)
    user.resetPasswordToken = None
    user.resetPasswordExpires = None
    user.updatedAt = datetime.utcnow()
    db.add(user)
    await db.commit()
    logger.info(f"Password reset for user {user.id}")

    return {"message": "Password has been reset"}
