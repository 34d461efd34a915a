from typing import Any
from datetime import datetime
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from smartlife.api import deps
from smartlife.database import get_db
from smartlife.models.common import Envelope
from smartlife.models.user import User, UserRead, UserUpdate

router = APIRouter()


@router.get("/me", response_model=Envelope[UserRead])
async def get_profile(
    current_user: User = Depends(deps.get_current_user)
) -> Any:
    return {"data": current_user}


@router.patch("/me", response_model=Envelope[UserRead])
async def update_profile(
    user_in: UserUpdate,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Any:
    """Update the display name and merge the given preference keys."""
    if user_in.name is not None:
        current_user.name = user_in.name.strip()

    if user_in.preferences is not None:
        changes = user_in.preferences.model_dump(exclude_none=True)
        # new dict so the JSON column is flagged dirty
        current_user.preferences = {**(current_user.preferences or {}), **changes}

    current_user.updatedAt = datetime.utcnow()
    db.add(current_user)
    await db.commit()
    await db.refresh(current_user)
    return {"message": "Profile updated successfully", "data": current_user}
