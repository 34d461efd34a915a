import hashlib
import secrets
from datetime import datetime, timedelta
from typing import Any, Optional

import jwt
from passlib.context import CryptContext

from smartlife.core.config import settings

ALGORITHM = settings.ALGORITHM

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# pbkdf2_sha256 has no native dependency
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _create_token(subject: Any, token_type: str, expires_delta: timedelta, extra: Optional[dict] = None) -> str:
    now = datetime.utcnow()
    payload = {
        "sub": str(subject),
        "type": token_type,
        "iat": now,
        "exp": now + expires_delta,
    }
    if extra:
        payload.update(extra)
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=ALGORITHM)


def create_access_token(subject: Any, expires_delta: Optional[timedelta] = None, email: Optional[str] = None) -> str:
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    extra = {"email": email} if email else None
    return _create_token(subject, ACCESS_TOKEN_TYPE, expires_delta, extra)


def create_refresh_token(subject: Any, expires_delta: Optional[timedelta] = None) -> str:
    if expires_delta is None:
        expires_delta = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return _create_token(subject, REFRESH_TOKEN_TYPE, expires_delta)


def decode_token(token: str) -> dict:
    """
    Decode and verify a JWT.

    Raises jwt.ExpiredSignatureError or jwt.InvalidTokenError; callers decide
    how to report them.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])


def generate_reset_token() -> tuple[str, str]:
    """Return (raw token, sha256 digest). Only the digest is stored."""
    raw = secrets.token_urlsafe(32)
    return raw, hash_reset_token(raw)


def hash_reset_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()
