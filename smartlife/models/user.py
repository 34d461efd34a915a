import re
from typing import Optional, Literal
from uuid import UUID
from datetime import datetime
from sqlmodel import SQLModel, Field
from sqlalchemy import JSON, Column
from pydantic import field_validator
from uuid6 import uuid7

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

DEFAULT_PREFERENCES = {
    "language": "en",
    "theme": "light",
    "currency": "USD",
    "units": "metric",
    "notifications": True,
}


class UserPreferences(SQLModel):
    language: Optional[str] = Field(default=None, max_length=10)
    theme: Optional[Literal["light", "dark"]] = None
    currency: Optional[str] = Field(default=None, max_length=3)
    units: Optional[Literal["metric", "imperial"]] = None
    notifications: Optional[bool] = None


class UserBase(SQLModel):
    email: str = Field(unique=True, index=True, max_length=255)
    name: str = Field(max_length=50)


class User(UserBase, table=True):
    __tablename__ = "users"
    id: UUID = Field(default_factory=uuid7, primary_key=True)
    password: str
    role: str = Field(default="user") # 'user' or 'premium'
    isActive: bool = Field(default=True, sa_column_kwargs={"name": "is_active"})
    preferences: dict = Field(default_factory=lambda: dict(DEFAULT_PREFERENCES), sa_column=Column(JSON))

    # Login statistics
    lastLogin: Optional[datetime] = Field(default=None, sa_column_kwargs={"name": "last_login"})
    loginCount: int = Field(default=0, sa_column_kwargs={"name": "login_count"})

    # Password reset (sha256 of the emailed token)
    resetPasswordToken: Optional[str] = Field(default=None, index=True, sa_column_kwargs={"name": "reset_password_token"})
    resetPasswordExpires: Optional[datetime] = Field(default=None, sa_column_kwargs={"name": "reset_password_expires"})

    createdAt: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"name": "created_at"})
    updatedAt: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"name": "updated_at"})


class UserCreate(SQLModel):
    email: str = Field(max_length=255)
    password: str = Field(min_length=6, max_length=128)
    name: str = Field(min_length=2, max_length=50)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not re.match(EMAIL_PATTERN, v):
            raise ValueError("Please provide a valid email")
        return v

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        return v


class UserLogin(SQLModel):
    email: str
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class UserUpdate(SQLModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    preferences: Optional[UserPreferences] = None


class UserRead(UserBase):
    id: UUID
    role: str
    isActive: bool
    preferences: dict
    lastLogin: Optional[datetime] = None
    loginCount: int
    createdAt: datetime
    updatedAt: datetime
