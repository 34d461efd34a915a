import logging
from datetime import date, datetime, timedelta
from typing import Any, Literal, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy import String, cast, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from smartlife.api import deps
from smartlife.api.pagination import LIKE_ESCAPE, PageParams, contains_pattern, paginate, rank, sort_clause
from smartlife.core.errors import APIError
from smartlife.database import get_db
from smartlife.models.common import Envelope, MessageResponse, Page
from smartlife.models.task import PRIORITY_RANK, TASK_STATUSES, Task, TaskCreate, TaskRead, TaskUpdate
from smartlife.models.user import User
from smartlife.services import statistics
from smartlife.services.task_lifecycle import TaskLifecycle

logger = logging.getLogger(__name__)

router = APIRouter()

SORT_FIELDS = {
    "createdAt": None,
    "updatedAt": None,
    "dueDate": None,
    "title": None,
    "status": None,
    "progress": None,
    "priority": rank(Task.priority, PRIORITY_RANK),
}


class StatusUpdate(BaseModel):
    status: Optional[str] = None


class ProgressUpdate(BaseModel):
    progress: Optional[int] = None


def _search_clause(q: str):
    pattern = contains_pattern(q)
    return or_(
        Task.title.ilike(pattern, escape=LIKE_ESCAPE),
        Task.description.ilike(pattern, escape=LIKE_ESCAPE),
        cast(Task.tags, String).ilike(pattern, escape=LIKE_ESCAPE),
    )


# --- Endpoints ---

@router.get("", response_model=Page[TaskRead])
async def list_tasks(
    params: PageParams = Depends(),
    status_: Optional[Literal["pending", "in-progress", "completed", "cancelled"]] = Query(None, alias="status"),
    priority: Optional[Literal["low", "medium", "high"]] = None,
    category: Optional[str] = None,
    completed: Optional[bool] = None,
    due: Optional[Literal["today", "overdue", "this-week"]] = None,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    stmt = select(Task).where(Task.userId == current_user.id)
    if status_:
        stmt = stmt.where(Task.status == status_)
    if priority:
        stmt = stmt.where(Task.priority == priority)
    if category:
        stmt = stmt.where(Task.category == category)
    if completed is not None:
        stmt = stmt.where(Task.completed == completed)
    if due:
        today = date.today()
        if due == "today":
            stmt = stmt.where(Task.dueDate == today)
        elif due == "overdue":
            stmt = stmt.where(Task.dueDate < today, Task.status != "completed")
        else:
            stmt = stmt.where(Task.dueDate >= today, Task.dueDate <= today + timedelta(days=7))

    page = await paginate(db, stmt, params, sort_clause(Task, params, SORT_FIELDS))
    return {"data": page["items"], "pagination": page["pagination"]}


@router.get("/search", response_model=Page[TaskRead])
async def search_tasks(
    q: Optional[str] = None,
    params: PageParams = Depends(),
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    """Case-insensitive match on title, description and tags."""
    q = (q or "").strip()
    if len(q) < 2:
        raise APIError(400, "Search query must be at least 2 characters long", "INVALID_SEARCH_QUERY", field="q")

    stmt = select(Task).where(Task.userId == current_user.id, _search_clause(q))
    page = await paginate(db, stmt, params, sort_clause(Task, params, SORT_FIELDS))
    return {"data": page["items"], "pagination": page["pagination"]}


@router.get("/stats/overview", response_model=Envelope[dict])
async def task_overview(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    result = await db.execute(select(Task).where(Task.userId == current_user.id))
    return {"data": statistics.task_stats(result.scalars().all(), date.today())}


@router.get("/{task_id}", response_model=Envelope[TaskRead])
async def get_task(
    task_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    task = await deps.get_owned(db, Task, task_id, current_user, "Task")
    return {"data": task}


@router.post("", response_model=Envelope[TaskRead], status_code=status.HTTP_201_CREATED)
async def create_task(
    task_in: TaskCreate,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    task = Task(**task_in.model_dump(exclude={"completed"}), userId=current_user.id)
    TaskLifecycle.sync(task)
    db.add(task)
    await db.commit()
    await db.refresh(task)
    return {"message": "Task created successfully", "data": task}


@router.put("/{task_id}", response_model=Envelope[TaskRead])
async def update_task(
    task_id: UUID,
    task_in: TaskUpdate,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    task = await deps.get_owned(db, Task, task_id, current_user, "Task")

    for key, value in task_in.model_dump(exclude={"completed"}).items():
        setattr(task, key, value)
    TaskLifecycle.sync(task)
    task.updatedAt = datetime.utcnow()

    db.add(task)
    await db.commit()
    await db.refresh(task)
    return {"message": "Task updated successfully", "data": task}


@router.patch("/{task_id}/status", response_model=Envelope[TaskRead])
async def update_task_status(
    task_id: UUID,
    body: StatusUpdate,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    if body.status not in TASK_STATUSES:
        raise APIError(400, "Invalid status value", "INVALID_STATUS", field="status")

    task = await deps.get_owned(db, Task, task_id, current_user, "Task")
    TaskLifecycle.set_status(task, body.status)
    task.updatedAt = datetime.utcnow()

    db.add(task)
    await db.commit()
    await db.refresh(task)
    return {"message": "Task status updated successfully", "data": task}


@router.patch("/{task_id}/progress", response_model=Envelope[TaskRead])
async def update_task_progress(
    task_id: UUID,
    body: ProgressUpdate,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    if body.progress is None or not 0 <= body.progress <= 100:
        raise APIError(400, "Progress must be between 0 and 100", "INVALID_PROGRESS", field="progress")

    task = await deps.get_owned(db, Task, task_id, current_user, "Task")
    TaskLifecycle.set_progress(task, body.progress)
    task.updatedAt = datetime.utcnow()

    db.add(task)
    await db.commit()
    await db.refresh(task)
    return {"message": "Task progress updated successfully", "data": task}


@router.post("/{task_id}/toggle", response_model=Envelope[TaskRead])
async def toggle_task(
    task_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    task = await deps.get_owned(db, Task, task_id, current_user, "Task")
    TaskLifecycle.toggle(task)
    task.updatedAt = datetime.utcnow()

    db.add(task)
    await db.commit()
    await db.refresh(task)
    return {"data": task}


@router.delete("/{task_id}", response_model=MessageResponse)
async def delete_task(
    task_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    task = await deps.get_owned(db, Task, task_id, current_user, "Task")
    await db.delete(task)
    await db.commit()
    logger.info(f"Deleted task {task_id} for user {current_user.id}")
    return {"message": "Task deleted successfully"}
