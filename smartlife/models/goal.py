import math
from typing import Optional, List, Literal
from uuid import UUID
from datetime import date, datetime
from sqlmodel import SQLModel, Field
from sqlalchemy import JSON, Column
from pydantic import field_validator
from uuid6 import uuid7

# Goals Models

GoalStatus = Literal["in-progress", "on-hold", "completed", "cancelled"]
GoalPriority = Literal["low", "medium", "high"]

GOAL_STATUSES = ("in-progress", "on-hold", "completed", "cancelled")


class Milestone(SQLModel):
    id: str
    text: str
    completed: bool = False
    completedAt: Optional[datetime] = None
    createdAt: datetime


class MilestoneCreate(SQLModel):
    id: Optional[str] = Field(default=None, max_length=64)
    text: str = Field(min_length=1, max_length=200)
    completed: bool = False
    # kept when importing an exported goal
    createdAt: Optional[datetime] = None
    completedAt: Optional[datetime] = None


class GoalBase(SQLModel):
    title: str = Field(max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    category: str = Field(default="personal", max_length=50) # "personal", "health", "financial", ...
    priority: str = Field(default="medium")
    progress: int = Field(default=0) # 0-100
    targetDate: Optional[date] = Field(default=None, sa_column_kwargs={"name": "target_date"})
    status: str = Field(default="in-progress")


class UserGoal(GoalBase, table=True):
    __tablename__ = "user_goals"
    id: UUID = Field(default_factory=uuid7, primary_key=True)
    userId: UUID = Field(foreign_key="users.id", index=True, sa_column_kwargs={"name": "user_id"})

    # list of Milestone dicts; reassign on change so the JSON column is flushed
    milestones: List[dict] = Field(default=[], sa_column=Column(JSON))

    completedAt: Optional[datetime] = Field(default=None, sa_column_kwargs={"name": "completed_at"})
    archived: bool = Field(default=False)
    archivedAt: Optional[datetime] = Field(default=None, sa_column_kwargs={"name": "archived_at"})

    # Timestamps
    createdAt: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"name": "created_at"})
    updatedAt: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"name": "updated_at"})


class UserGoalCreate(GoalBase):
    title: str = Field(min_length=1, max_length=200)
    priority: GoalPriority = "medium"
    progress: int = Field(default=0)
    status: GoalStatus = "in-progress"
    milestones: List[MilestoneCreate] = Field(default=[], max_length=50)

    @field_validator("progress", mode="before")
    @classmethod
    def clamp_progress(cls, v):
        if v is None:
            return 0
        try:
            v = float(v)
        except (TypeError, ValueError):
            raise ValueError("Progress must be a number")
        if not math.isfinite(v):
            raise ValueError("Progress must be a finite number")
        return max(0, min(100, int(round(v))))

    @field_validator("milestones")
    @classmethod
    def unique_milestone_ids(cls, v):
        ids = [m.id for m in v if m.id]
        if len(ids) != len(set(ids)):
            raise ValueError("Milestone ids must be unique")
        return v


class UserGoalUpdate(UserGoalCreate):
    pass


class UserGoalRead(GoalBase):
    id: UUID
    userId: UUID
    milestones: List[Milestone] = []
    completedAt: Optional[datetime] = None
    archived: bool
    archivedAt: Optional[datetime] = None
    createdAt: datetime
    updatedAt: datetime
