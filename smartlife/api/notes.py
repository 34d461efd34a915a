from datetime import datetime
from typing import Any, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from smartlife.api import deps
from smartlife.api.pagination import LIKE_ESCAPE, PageParams, contains_pattern, paginate, sort_clause
from smartlife.database import get_db
from smartlife.models.common import Envelope, MessageResponse, Page
from smartlife.models.note import Note, NoteCreate, NoteRead, NoteUpdate
from smartlife.models.user import User
from smartlife.services import statistics

router = APIRouter()

SORT_FIELDS = {
    "createdAt": None,
    "updatedAt": None,
    "text": None,
    "completed": None,
}


@router.get("", response_model=Page[NoteRead])
async def list_notes(
    params: PageParams = Depends(),
    q: Optional[str] = None,
    completed: Optional[bool] = None,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    stmt = select(Note).where(Note.userId == current_user.id)
    if q:
        stmt = stmt.where(Note.text.ilike(contains_pattern(q), escape=LIKE_ESCAPE))
    if completed is not None:
        stmt = stmt.where(Note.completed == completed)

    page = await paginate(db, stmt, params, sort_clause(Note, params, SORT_FIELDS))
    return {"data": page["items"], "pagination": page["pagination"]}


@router.get("/stats/overview", response_model=Envelope[dict])
async def note_overview(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    result = await db.execute(select(Note).where(Note.userId == current_user.id))
    return {"data": statistics.note_stats(result.scalars().all(), datetime.utcnow())}


@router.get("/{note_id}", response_model=Envelope[NoteRead])
async def get_note(
    note_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    note = await deps.get_owned(db, Note, note_id, current_user, "Note")
    return {"data": note}


@router.post("", response_model=Envelope[NoteRead], status_code=status.HTTP_201_CREATED)
async def create_note(
    note_in: NoteCreate,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    note = Note(**note_in.model_dump(), userId=current_user.id)
    db.add(note)
    await db.commit()
    await db.refresh(note)
    return {"message": "Note created successfully", "data": note}


@router.put("/{note_id}", response_model=Envelope[NoteRead])
async def update_note(
    note_id: UUID,
    note_in: NoteUpdate,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    note = await deps.get_owned(db, Note, note_id, current_user, "Note")
    note.text = note_in.text
    note.completed = note_in.completed
    note.updatedAt = datetime.utcnow()

    db.add(note)
    await db.commit()
    await db.refresh(note)
    return {"message": "Note updated successfully", "data": note}


@router.post("/{note_id}/toggle", response_model=Envelope[NoteRead])
async def toggle_note(
    note_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    note = await deps.get_owned(db, Note, note_id, current_user, "Note")
    note.completed = not note.completed
    note.updatedAt = datetime.utcnow()

    db.add(note)
    await db.commit()
    await db.refresh(note)
    return {"data": note}


@router.delete("/{note_id}", response_model=MessageResponse)
async def delete_note(
    note_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    note = await deps.get_owned(db, Note, note_id, current_user, "Note")
    await db.delete(note)
    await db.commit()
    return {"message": "Note deleted successfully"}
