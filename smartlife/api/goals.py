import logging
import math
from datetime import date, datetime
from typing import Any, List, Literal, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from smartlife.api import deps
from smartlife.api.pagination import LIKE_ESCAPE, PageParams, contains_pattern, paginate, sort_clause
from smartlife.core.errors import APIError, not_found
from smartlife.database import get_db
from smartlife.models.common import Envelope, MessageResponse, Page
from smartlife.models.goal import GOAL_STATUSES, MilestoneCreate, UserGoal, UserGoalCreate, UserGoalRead, UserGoalUpdate
from smartlife.models.user import User
from smartlife.services import statistics
from smartlife.services.goal_calculator import GoalCalculator

logger = logging.getLogger(__name__)

router = APIRouter()

SORT_FIELDS = {
    "createdAt": None,
    "updatedAt": None,
    "targetDate": None,
    "title": None,
    "progress": None,
    "status": None,
}


class ProgressUpdate(BaseModel):
    progress: Optional[float] = None


class StatusUpdate(BaseModel):
    status: Optional[str] = None


def _quarter_start(today: date) -> date:
    return date(today.year, 3 * ((today.month - 1) // 3) + 1, 1)


def _add_months(d: date, months: int) -> date:
    month = d.month - 1 + months
    return date(d.year + month // 12, month % 12 + 1, 1)


def apply_goal_payload(goal: UserGoal, goal_in: UserGoalCreate) -> None:
    for key, value in goal_in.model_dump(exclude={"milestones", "progress", "status"}).items():
        setattr(goal, key, value)
    goal.milestones = GoalCalculator.merge_milestones(
        goal.milestones or [], [m.model_dump() for m in goal_in.milestones]
    )

    if goal_in.status == "completed":
        GoalCalculator.set_status(goal, "completed")
        return

    goal.status = goal_in.status
    goal.completedAt = None
    # milestones, when present, decide the progress
    from_milestones = GoalCalculator.milestone_progress(goal.milestones)
    GoalCalculator.set_progress(goal, goal_in.progress if from_milestones is None else from_milestones)


async def _save(db: AsyncSession, goal: UserGoal) -> UserGoal:
    goal.updatedAt = datetime.utcnow()
    db.add(goal)
    await db.commit()
    await db.refresh(goal)
    return goal


# --- Endpoints ---

@router.get("", response_model=Page[UserGoalRead])
async def list_goals(
    params: PageParams = Depends(),
    status_: Optional[Literal["in-progress", "on-hold", "completed", "cancelled"]] = Query(None, alias="status"),
    category: Optional[str] = None,
    archived: Optional[bool] = False,
    timeframe: Optional[Literal["this-month", "this-quarter", "this-year", "overdue"]] = None,
    q: Optional[str] = None,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    Fetch the user's goals. Archived goals are hidden unless
    ``archived=true`` is passed.
    """
    stmt = select(UserGoal).where(UserGoal.userId == current_user.id)
    if status_:
        stmt = stmt.where(UserGoal.status == status_)
    if category:
        stmt = stmt.where(UserGoal.category == category)
    if archived is not None:
        stmt = stmt.where(UserGoal.archived == archived)
    if q:
        pattern = contains_pattern(q)
        stmt = stmt.where(or_(
            UserGoal.title.ilike(pattern, escape=LIKE_ESCAPE),
            UserGoal.description.ilike(pattern, escape=LIKE_ESCAPE),
        ))
    if timeframe:
        today = date.today()
        if timeframe == "overdue":
            stmt = stmt.where(UserGoal.targetDate < today, UserGoal.status != "completed")
        else:
            if timeframe == "this-month":
                start = today.replace(day=1)
                end = _add_months(start, 1)
            elif timeframe == "this-quarter":
                start = _quarter_start(today)
                end = _add_months(start, 3)
            else:
                start = date(today.year, 1, 1)
                end = date(today.year + 1, 1, 1)
            stmt = stmt.where(UserGoal.targetDate >= start, UserGoal.targetDate < end)

    page = await paginate(db, stmt, params, sort_clause(UserGoal, params, SORT_FIELDS))
    return {"data": page["items"], "pagination": page["pagination"]}


@router.get("/stats/overview", response_model=Envelope[dict])
async def goal_overview(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    result = await db.execute(select(UserGoal).where(UserGoal.userId == current_user.id))
    return {"data": statistics.goal_stats(result.scalars().all(), date.today())}


@router.post("/archive-completed", response_model=Envelope[dict])
async def archive_completed_goals(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    result = await db.execute(
        select(UserGoal).where(
            UserGoal.userId == current_user.id,
            UserGoal.status == "completed",
            UserGoal.archived == False,  # noqa: E712
        )
    )
    goals = result.scalars().all()
    now = datetime.utcnow()
    for goal in goals:
        GoalCalculator.archive(goal, now)
        goal.updatedAt = now
        db.add(goal)
    await db.commit()
    return {"message": f"{len(goals)} completed goals archived", "data": {"archived": len(goals)}}


@router.get("/{goal_id}", response_model=Envelope[UserGoalRead])
async def get_goal(
    goal_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    goal = await deps.get_owned(db, UserGoal, goal_id, current_user, "Goal")
    return {"data": goal}


@router.post("", response_model=Envelope[UserGoalRead], status_code=status.HTTP_201_CREATED)
async def create_goal(
    goal_in: UserGoalCreate,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    Create a new goal for the user. Initial milestones, if any, decide the
    starting progress.
    """
    goal = UserGoal(title=goal_in.title, userId=current_user.id)
    apply_goal_payload(goal, goal_in)
    db.add(goal)
    await db.commit()
    await db.refresh(goal)
    return {"message": "Goal created successfully", "data": goal}


@router.put("/{goal_id}", response_model=Envelope[UserGoalRead])
async def update_goal(
    goal_id: UUID,
    goal_in: UserGoalUpdate,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    goal = await deps.get_owned(db, UserGoal, goal_id, current_user, "Goal")
    apply_goal_payload(goal, goal_in)
    goal = await _save(db, goal)
    return {"message": "Goal updated successfully", "data": goal}


@router.patch("/{goal_id}/progress", response_model=Envelope[UserGoalRead])
async def update_goal_progress(
    goal_id: UUID,
    body: ProgressUpdate,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    if body.progress is None or not math.isfinite(body.progress):
        raise APIError(400, "Progress must be a number", "INVALID_PROGRESS", field="progress")

    goal = await deps.get_owned(db, UserGoal, goal_id, current_user, "Goal")
    GoalCalculator.set_progress(goal, body.progress)
    goal = await _save(db, goal)
    return {"message": "Goal progress updated successfully", "data": goal}


@router.patch("/{goal_id}/status", response_model=Envelope[UserGoalRead])
async def update_goal_status(
    goal_id: UUID,
    body: StatusUpdate,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    if body.status not in GOAL_STATUSES:
        raise APIError(400, "Invalid status value", "INVALID_STATUS", field="status")

    goal = await deps.get_owned(db, UserGoal, goal_id, current_user, "Goal")
    GoalCalculator.set_status(goal, body.status)
    goal = await _save(db, goal)
    return {"message": "Goal status updated successfully", "data": goal}


# --- Milestones ---

@router.post("/{goal_id}/milestones", response_model=Envelope[UserGoalRead], status_code=status.HTTP_201_CREATED)
async def add_milestone(
    goal_id: UUID,
    milestone_in: MilestoneCreate,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    goal = await deps.get_owned(db, UserGoal, goal_id, current_user, "Goal")
    milestone = GoalCalculator.new_milestone(milestone_in.text, milestone_in.completed)
    GoalCalculator.set_milestones(goal, [*goal.milestones, milestone])
    goal = await _save(db, goal)
    return {"message": "Milestone added", "data": goal}


@router.patch("/{goal_id}/milestones/{milestone_id}/toggle", response_model=Envelope[UserGoalRead])
async def toggle_milestone(
    goal_id: UUID,
    milestone_id: str,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    goal = await deps.get_owned(db, UserGoal, goal_id, current_user, "Goal")
    if GoalCalculator.toggle_milestone(goal, milestone_id) is None:
        raise not_found("Milestone")
    goal = await _save(db, goal)
    return {"data": goal}


@router.delete("/{goal_id}/milestones/{milestone_id}", response_model=Envelope[UserGoalRead])
async def delete_milestone(
    goal_id: UUID,
    milestone_id: str,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    goal = await deps.get_owned(db, UserGoal, goal_id, current_user, "Goal")
    remaining: List[dict] = [m for m in goal.milestones if m.get("id") != milestone_id]
    if len(remaining) == len(goal.milestones):
        raise not_found("Milestone")
    GoalCalculator.set_milestones(goal, remaining)
    goal = await _save(db, goal)
    return {"message": "Milestone deleted", "data": goal}


# --- Archive ---

@router.post("/{goal_id}/archive", response_model=Envelope[UserGoalRead])
async def archive_goal(
    goal_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    goal = await deps.get_owned(db, UserGoal, goal_id, current_user, "Goal")
    GoalCalculator.archive(goal)
    goal = await _save(db, goal)
    return {"message": "Goal archived", "data": goal}


@router.post("/{goal_id}/restore", response_model=Envelope[UserGoalRead])
async def restore_goal(
    goal_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    goal = await deps.get_owned(db, UserGoal, goal_id, current_user, "Goal")
    GoalCalculator.restore(goal)
    goal = await _save(db, goal)
    return {"message": "Goal restored", "data": goal}


@router.delete("/{goal_id}", response_model=MessageResponse)
async def delete_goal(
    goal_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    goal = await deps.get_owned(db, UserGoal, goal_id, current_user, "Goal")
    await db.delete(goal)
    await db.commit()
    logger.info(f"Deleted goal {goal_id} for user {current_user.id}")
    return {"message": "Goal deleted successfully"}
