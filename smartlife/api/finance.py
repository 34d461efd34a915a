import logging
from datetime import date, datetime, timedelta
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
from smartlife.models.finance import FinanceEntry, FinanceEntryCreate, FinanceEntryRead, FinanceEntryUpdate
from smartlife.models.user import User
from smartlife.services import statistics

logger = logging.getLogger(__name__)

router = APIRouter()

SORT_FIELDS = {
    "date": None,
    "createdAt": None,
    "amount": None,
    "title": None,
    "category": None,
    "type": None,
}

DateRange = Literal["today", "week", "month", "quarter", "year"]


def range_start(range_: str, today: date) -> date:
    """First day included by a ``range`` filter; the range always ends today."""
    if range_ == "today":
        return today
    if range_ == "week":
        return today - timedelta(days=6)
    if range_ == "month":
        return today.replace(day=1)
    if range_ == "quarter":
        return date(today.year, 3 * ((today.month - 1) // 3) + 1, 1)
    return date(today.year, 1, 1)


@router.get("", response_model=Page[FinanceEntryRead])
async def list_finance_entries(
    params: PageParams = Depends(),
    type: Optional[Literal["income", "expense"]] = None,
    category: Optional[str] = None,
    paymentMethod: Optional[Literal["cash", "card", "bank", "savings"]] = None,
    range: Optional[DateRange] = None,
    q: Optional[str] = None,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    stmt = select(FinanceEntry).where(FinanceEntry.userId == current_user.id)
    if type:
        stmt = stmt.where(FinanceEntry.type == type)
    if category:
        stmt = stmt.where(FinanceEntry.category == category)
    if paymentMethod:
        stmt = stmt.where(FinanceEntry.paymentMethod == paymentMethod)
    if range:
        today = date.today()
        stmt = stmt.where(FinanceEntry.date >= range_start(range, today), FinanceEntry.date <= today)
    if q:
        pattern = contains_pattern(q)
        stmt = stmt.where(or_(
            FinanceEntry.title.ilike(pattern, escape=LIKE_ESCAPE),
            FinanceEntry.description.ilike(pattern, escape=LIKE_ESCAPE),
            FinanceEntry.category.ilike(pattern, escape=LIKE_ESCAPE),
        ))

    page = await paginate(db, stmt, params, sort_clause(FinanceEntry, params, SORT_FIELDS, default="date"))
    return {"data": page["items"], "pagination": page["pagination"]}


@router.get("/stats/overview", response_model=Envelope[dict])
async def finance_overview(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    result = await db.execute(select(FinanceEntry).where(FinanceEntry.userId == current_user.id))
    return {"data": statistics.finance_stats(result.scalars().all(), date.today())}


@router.get("/{entry_id}", response_model=Envelope[FinanceEntryRead])
async def get_finance_entry(
    entry_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    entry = await deps.get_owned(db, FinanceEntry, entry_id, current_user, "Finance entry")
    return {"data": entry}


@router.post("", response_model=Envelope[FinanceEntryRead], status_code=status.HTTP_201_CREATED)
async def create_finance_entry(
    entry_in: FinanceEntryCreate,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    entry = FinanceEntry(**entry_in.model_dump(), userId=current_user.id)
    db.add(entry)
    await db.commit()
    await db.refresh(entry)
    return {"message": "Finance entry created successfully", "data": entry}


@router.put("/{entry_id}", response_model=Envelope[FinanceEntryRead])
async def update_finance_entry(
    entry_id: UUID,
    entry_in: FinanceEntryUpdate,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    entry = await deps.get_owned(db, FinanceEntry, entry_id, current_user, "Finance entry")
    for key, value in entry_in.model_dump().items():
        setattr(entry, key, value)
    entry.updatedAt = datetime.utcnow()

    db.add(entry)
    await db.commit()
    await db.refresh(entry)
    return {"message": "Finance entry updated successfully", "data": entry}


@router.delete("/{entry_id}", response_model=MessageResponse)
async def delete_finance_entry(
    entry_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    entry = await deps.get_owned(db, FinanceEntry, entry_id, current_user, "Finance entry")
    await db.delete(entry)
    await db.commit()
    logger.info(f"Deleted finance entry {entry_id} for user {current_user.id}")
    return {"message": "Finance entry deleted successfully"}
