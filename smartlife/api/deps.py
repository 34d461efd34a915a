from typing import Optional
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
import jwt
from sqlalchemy.ext.asyncio import AsyncSession
from smartlife.core import security
from smartlife.core.config import settings
from smartlife.core.errors import APIError, access_denied, not_found
from smartlife.database import get_db
from smartlife.models.user import User
from sqlmodel import select

ACCESS_COOKIE = "token"
REFRESH_COOKIE = "refresh_token"

reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/login",
    auto_error=False
)


def _unauthorized(message: str, code: str) -> APIError:
    return APIError(401, message, code, headers={"WWW-Authenticate": "Bearer"})


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    token: Optional[str] = Depends(reusable_oauth2)
) -> User:
    # Bearer header first, then the httpOnly cookie
    if not token:
        token = request.cookies.get(ACCESS_COOKIE)
        if token and token.startswith("Bearer "):
            token = token.split(" ", 1)[1]

    if not token:
        raise _unauthorized("Access denied. No token provided.", "NO_TOKEN")

    try:
        payload = security.decode_token(token)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token expired", "TOKEN_EXPIRED")
    except jwt.InvalidTokenError:
        raise _unauthorized("Invalid token", "INVALID_TOKEN")

    if payload.get("type") != security.ACCESS_TOKEN_TYPE:
        raise _unauthorized("Invalid token type", "INVALID_TOKEN_TYPE")

    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError:
        raise _unauthorized("Invalid token", "INVALID_TOKEN")

    # In 'sub' we stored user ID
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalars().first()

    if not user:
        raise _unauthorized("User not found", "USER_NOT_FOUND")
    if not user.isActive:
        raise _unauthorized("Account is deactivated", "USER_DEACTIVATED")
    return user


async def get_owned(db: AsyncSession, model, record_id: UUID, user: User, entity: str):
    """Load a record by id; 404 if missing, 403 if it belongs to another user."""
    record = await db.get(model, record_id)
    if not record:
        raise not_found(entity)
    if record.userId != user.id:
        raise access_denied()
    return record
