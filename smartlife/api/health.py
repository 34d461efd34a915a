import logging
from datetime import date, datetime
from typing import Any, Literal, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, status
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from smartlife.api import deps
from smartlife.api.pagination import LIKE_ESCAPE, PageParams, contains_pattern, paginate, sort_clause
from smartlife.database import get_db
from smartlife.models.common import Envelope, MessageResponse, Page
from smartlife.models.health import HealthEntry, HealthEntryCreate, HealthEntryRead, HealthEntryUpdate
from smartlife.models.user import User
from smartlife.services import statistics

logger = logging.getLogger(__name__)

router = APIRouter()

SORT_FIELDS = {
    "date": None,
    "createdAt": None,
    "type": None,
    "calories": None,
    "duration": None,
    "weight": None,
}


@router.get("", response_model=Page[HealthEntryRead])
async def list_health_entries(
    params: PageParams = Depends(),
    type: Optional[Literal["workout", "diet", "weight", "water"]] = None,
    q: Optional[str] = None,
    dateFrom: Optional[date] = None,
    dateTo: Optional[date] = None,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    stmt = select(HealthEntry).where(HealthEntry.userId == current_user.id)
    if type:
        stmt = stmt.where(HealthEntry.type == type)
    if q:
        pattern = contains_pattern(q)
        stmt = stmt.where(or_(
            HealthEntry.title.ilike(pattern, escape=LIKE_ESCAPE),
            HealthEntry.description.ilike(pattern, escape=LIKE_ESCAPE),
        ))
    if dateFrom:
        stmt = stmt.where(HealthEntry.date >= dateFrom)
    if dateTo:
        stmt = stmt.where(HealthEntry.date <= dateTo)

    page = await paginate(db, stmt, params, sort_clause(HealthEntry, params, SORT_FIELDS, default="date"))
    return {"data": page["items"], "pagination": page["pagination"]}


@router.get("/stats/overview", response_model=Envelope[dict])
async def health_overview(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    result = await db.execute(select(HealthEntry).where(HealthEntry.userId == current_user.id))
    return {"data": statistics.health_stats(result.scalars().all(), date.today())}


@router.get("/{entry_id}", response_model=Envelope[HealthEntryRead])
async def get_health_entry(
    entry_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    entry = await deps.get_owned(db, HealthEntry, entry_id, current_user, "Health entry")
    return {"data": entry}


@router.post("", response_model=Envelope[HealthEntryRead], status_code=status.HTTP_201_CREATED)
async def create_health_entry(
    entry_in: HealthEntryCreate,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    entry = HealthEntry(**entry_in.model_dump(), userId=current_user.id)
    db.add(entry)
    await db.commit()
    await db.refresh(entry)
    return {"message": "Health entry created successfully", "data": entry}


@router.put("/{entry_id}", response_model=Envelope[HealthEntryRead])
async def update_health_entry(
    entry_id: UUID,
    entry_in: HealthEntryUpdate,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    entry = await deps.get_owned(db, HealthEntry, entry_id, current_user, "Health entry")
    for key, value in entry_in.model_dump().items():
        setattr(entry, key, value)
    entry.updatedAt = datetime.utcnow()

    db.add(entry)
    await db.commit()
    await db.refresh(entry)
    return {"message": "Health entry updated successfully", "data": entry}


@router.delete("/{entry_id}", response_model=MessageResponse)
async def delete_health_entry(
    entry_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    entry = await deps.get_owned(db, HealthEntry, entry_id, current_user, "Health entry")
    await db.delete(entry)
    await db.commit()
    return {"message": "Health entry deleted successfully"}
