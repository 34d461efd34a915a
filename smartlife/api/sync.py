"""
Import and export of the collections in the browser local-storage layout.

The web client kept each collection under its own storage key
(``smart-life-tasks``, ``smart-life-goals`` ...). Exports use the same keys so
a saved blob can be imported back, into this account or another one.
"""
import logging
from typing import Any, Dict, List, Literal, Optional
from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from smartlife.api import deps
from smartlife.api.goals import apply_goal_payload
from smartlife.core.errors import validation_details
from smartlife.database import get_db
from smartlife.models.common import Envelope
from smartlife.models.finance import FinanceEntry, FinanceEntryCreate, FinanceEntryRead
from smartlife.models.goal import UserGoal, UserGoalCreate, UserGoalRead
from smartlife.models.health import HealthEntry, HealthEntryCreate, HealthEntryRead
from smartlife.models.note import Note, NoteCreate, NoteRead
from smartlife.models.task import Task, TaskCreate, TaskRead
from smartlife.models.user import User
from smartlife.services.task_lifecycle import TaskLifecycle

logger = logging.getLogger(__name__)

router = APIRouter()

TASKS_KEY = "smart-life-tasks"
GOALS_KEY = "smart-life-goals"
HEALTH_KEY = "smart-life-health"
FINANCE_KEY = "smart-life-finance"
NOTES_KEY = "smart-life-notes"


def _build_task(data: TaskCreate, user: User) -> Task:
    task = Task(**data.model_dump(exclude={"completed"}), userId=user.id)
    TaskLifecycle.sync(task)
    return task


def _build_goal(data: UserGoalCreate, user: User) -> UserGoal:
    goal = UserGoal(title=data.title, userId=user.id)
    apply_goal_payload(goal, data)
    return goal


# storage key -> (table, create schema, read schema, builder)
COLLECTIONS = {
    TASKS_KEY: (Task, TaskCreate, TaskRead, _build_task),
    GOALS_KEY: (UserGoal, UserGoalCreate, UserGoalRead, _build_goal),
    HEALTH_KEY: (HealthEntry, HealthEntryCreate, HealthEntryRead, lambda d, u: HealthEntry(**d.model_dump(), userId=u.id)),
    FINANCE_KEY: (FinanceEntry, FinanceEntryCreate, FinanceEntryRead, lambda d, u: FinanceEntry(**d.model_dump(), userId=u.id)),
    NOTES_KEY: (Note, NoteCreate, NoteRead, lambda d, u: Note(**d.model_dump(), userId=u.id)),
}


class ImportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    mode: Literal["merge", "replace"] = "merge"
    tasks: Optional[List[Dict[str, Any]]] = Field(default=None, alias=TASKS_KEY)
    goals: Optional[List[Dict[str, Any]]] = Field(default=None, alias=GOALS_KEY)
    health: Optional[List[Dict[str, Any]]] = Field(default=None, alias=HEALTH_KEY)
    finance: Optional[List[Dict[str, Any]]] = Field(default=None, alias=FINANCE_KEY)
    notes: Optional[List[Dict[str, Any]]] = Field(default=None, alias=NOTES_KEY)

    def collections(self) -> Dict[str, List[Dict[str, Any]]]:
        by_key = {
            TASKS_KEY: self.tasks,
            GOALS_KEY: self.goals,
            HEALTH_KEY: self.health,
            FINANCE_KEY: self.finance,
            NOTES_KEY: self.notes,
        }
        return {k: v for k, v in by_key.items() if v is not None}


class SkippedRecord(BaseModel):
    key: str
    index: int
    errors: List[dict]


class ImportResult(BaseModel):
    mode: str
    imported: Dict[str, int]
    skipped: List[SkippedRecord]


@router.get("/export", response_model=Envelope[Dict[str, List[dict]]])
async def export_collections(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    data = {}
    for key, (model, _, read_schema, _) in COLLECTIONS.items():
        result = await db.execute(
            select(model).where(model.userId == current_user.id).order_by(model.createdAt)
        )
        data[key] = [
            jsonable_encoder(read_schema.model_validate(record)) for record in result.scalars().all()
        ]
    return {"data": data}


@router.post("/import", response_model=Envelope[ImportResult])
async def import_collections(
    body: ImportRequest,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    Validate every record with the collection's create schema. Invalid
    records are skipped and reported; valid ones are stored as new records
    owned by the caller. ``replace`` first clears the collections present in
    the payload.
    """
    imported: Dict[str, int] = {}
    skipped: List[dict] = []

    for key, records in body.collections().items():
        model, create_schema, _, build = COLLECTIONS[key]
        if body.mode == "replace":
            await db.execute(delete(model).where(model.userId == current_user.id))

        count = 0
        for index, raw in enumerate(records):
            try:
                data = create_schema.model_validate(raw)
            except ValidationError as e:
                skipped.append({
                    "key": key,
                    "index": index,
                    "errors": jsonable_encoder(validation_details(e.errors())),
                })
                continue
            db.add(build(data, current_user))
            count += 1
        imported[key] = count

    await db.commit()
    logger.info(f"Imported {sum(imported.values())} records for user {current_user.id} ({body.mode})")

    return {
        "message": "Import completed",
        "data": {"mode": body.mode, "imported": imported, "skipped": skipped},
    }
