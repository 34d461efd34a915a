from typing import Any, List
from datetime import date, datetime
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from pydantic import BaseModel

from smartlife.api import deps
from smartlife.database import get_db
from smartlife.models.common import Envelope
from smartlife.models.user import User
from smartlife.models.task import Task
from smartlife.models.goal import UserGoal
from smartlife.models.health import HealthEntry
from smartlife.models.finance import FinanceEntry
from smartlife.models.note import Note
from smartlife.services import statistics

router = APIRouter()


class ActivityItem(BaseModel):
    type: str # "task", "goal", "health", "finance", "note"
    id: str
    title: str | None = None
    createdAt: datetime


class DashboardData(BaseModel):
    tasks: dict
    goals: dict
    health: dict
    finance: dict
    notes: dict
    recentActivity: List[ActivityItem]


async def _owned(db: AsyncSession, model, user: User) -> list:
    result = await db.execute(select(model).where(model.userId == user.id))
    return result.scalars().all()


@router.get("", response_model=Envelope[DashboardData])
async def get_dashboard(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    One-call summary of every collection for the signed-in user.
    """
    today = date.today()
    now = datetime.utcnow()

    tasks = await _owned(db, Task, current_user)
    goals = await _owned(db, UserGoal, current_user)
    health = await _owned(db, HealthEntry, current_user)
    finance = await _owned(db, FinanceEntry, current_user)
    notes = await _owned(db, Note, current_user)

    return {
        "data": {
            "tasks": statistics.task_stats(tasks, today),
            "goals": statistics.goal_stats(goals, today),
            "health": statistics.health_stats(health, today),
            "finance": statistics.finance_stats(finance, today),
            "notes": statistics.note_stats(notes, now),
            "recentActivity": statistics.recent_activity(
                task=tasks, goal=goals, health=health, finance=finance, note=notes
            ),
        }
    }
