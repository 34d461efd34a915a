from uuid import UUID
from datetime import datetime
from sqlmodel import SQLModel, Field
from uuid6 import uuid7


class NoteBase(SQLModel):
    text: str = Field(max_length=1000)
    completed: bool = Field(default=False)


class Note(NoteBase, table=True):
    __tablename__ = "notes"
    id: UUID = Field(default_factory=uuid7, primary_key=True)
    userId: UUID = Field(foreign_key="users.id", index=True, sa_column_kwargs={"name": "user_id"})
    createdAt: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"name": "created_at"})
    updatedAt: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"name": "updated_at"})


class NoteCreate(NoteBase):
    text: str = Field(min_length=1, max_length=1000)


class NoteUpdate(NoteCreate):
    pass


class NoteRead(NoteBase):
    id: UUID
    userId: UUID
    createdAt: datetime
    updatedAt: datetime
