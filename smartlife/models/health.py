import math
from typing import Optional, Literal
from uuid import UUID
import datetime as dt
from pydantic import field_validator
from sqlmodel import SQLModel, Field
from uuid6 import uuid7

HealthType = Literal["workout", "diet", "weight", "water"]


class HealthEntryBase(SQLModel):
    type: str # 'workout', 'diet', 'weight', 'water'
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    date: dt.date
    duration: Optional[float] = None # minutes
    calories: Optional[float] = None
    weight: Optional[float] = None # kg
    water: Optional[float] = None # litres


class HealthEntry(HealthEntryBase, table=True):
    __tablename__ = "health_entries"
    id: UUID = Field(default_factory=uuid7, primary_key=True)
    userId: UUID = Field(foreign_key="users.id", index=True, sa_column_kwargs={"name": "user_id"})
    createdAt: dt.datetime = Field(default_factory=dt.datetime.utcnow, sa_column_kwargs={"name": "created_at"})
    updatedAt: dt.datetime = Field(default_factory=dt.datetime.utcnow, sa_column_kwargs={"name": "updated_at"})


class HealthEntryCreate(HealthEntryBase):
    type: HealthType
    date: dt.date = Field(default_factory=dt.date.today)
    duration: Optional[float] = Field(default=None, ge=0)
    calories: Optional[float] = Field(default=None, ge=0)
    weight: Optional[float] = Field(default=None, gt=0, le=500)
    water: Optional[float] = Field(default=None, ge=0)

    @field_validator("duration", "calories", "weight", "water")
    @classmethod
    def finite_measure(cls, v):
        if v is not None and not math.isfinite(v):
            raise ValueError("Must be a finite number")
        return v


class HealthEntryUpdate(HealthEntryCreate):
    pass


class HealthEntryRead(HealthEntryBase):
    id: UUID
    userId: UUID
    createdAt: dt.datetime
    updatedAt: dt.datetime
