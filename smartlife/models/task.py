from typing import Optional, List, Literal
from uuid import UUID
from datetime import date, datetime
from sqlmodel import SQLModel, Field
from sqlalchemy import JSON, Column
from pydantic import model_validator
from uuid6 import uuid7

TaskStatus = Literal["pending", "in-progress", "completed", "cancelled"]
TaskPriority = Literal["low", "medium", "high"]

TASK_STATUSES = ("pending", "in-progress", "completed", "cancelled")
PRIORITY_RANK = {"low": 1, "medium": 2, "high": 3}


class TaskBase(SQLModel):
    title: str = Field(max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    priority: str = Field(default="medium") # 'low', 'medium', 'high'
    category: Optional[str] = Field(default=None, max_length=50)
    tags: List[str] = Field(default=[], sa_column=Column(JSON))
    dueDate: Optional[date] = Field(default=None, sa_column_kwargs={"name": "due_date"})
    status: str = Field(default="pending") # 'pending', 'in-progress', 'completed', 'cancelled'
    progress: int = Field(default=0) # 0-100


class Task(TaskBase, table=True):
    __tablename__ = "tasks"
    id: UUID = Field(default_factory=uuid7, primary_key=True)
    userId: UUID = Field(foreign_key="users.id", index=True, sa_column_kwargs={"name": "user_id"})
    completed: bool = Field(default=False)
    completedAt: Optional[datetime] = Field(default=None, sa_column_kwargs={"name": "completed_at"})
    createdAt: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"name": "created_at"})
    updatedAt: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"name": "updated_at"})


class TaskCreate(TaskBase):
    """
    Task payload. ``text`` is accepted as an alias of ``title`` and a bare
    ``completed`` flag is translated into the matching status.
    """
    title: str = Field(min_length=1, max_length=200)
    priority: TaskPriority = "medium"
    tags: List[str] = Field(default=[], max_length=20)
    status: TaskStatus = "pending"
    progress: int = Field(default=0, ge=0, le=100)
    completed: Optional[bool] = None

    @model_validator(mode="before")
    @classmethod
    def accept_text_alias(cls, data):
        if isinstance(data, dict) and "title" not in data and "text" in data:
            data = {**data, "title": data["text"]}
        return data

    @model_validator(mode="after")
    def sync_completed(self):
        if self.completed is True:
            self.status = "completed"
        elif self.completed is False and self.status == "completed":
            self.status = "in-progress"
        return self


class TaskUpdate(TaskCreate):
    pass


class TaskRead(TaskBase):
    id: UUID
    userId: UUID
    completed: bool
    completedAt: Optional[datetime] = None
    createdAt: datetime
    updatedAt: datetime
