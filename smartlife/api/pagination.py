import math
from typing import Any, Dict, Literal, Optional

from fastapi import Query
from sqlalchemy import case, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from smartlife.core.errors import APIError

DEFAULT_LIMIT = 20
MAX_LIMIT = 100
LIKE_ESCAPE = "\\"


class PageParams:
    """Query parameters shared by every list endpoint."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
        sortBy: Optional[str] = Query(None),
        sortOrder: Literal["asc", "desc"] = Query("desc"),
    ):
        self.page = page
        self.limit = limit
        self.sortBy = sortBy
        self.sortOrder = sortOrder

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def contains_pattern(q: str) -> str:
    """``%q%`` for ILIKE, with the user's own ``%`` and ``_`` matched literally."""
    escaped = q.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def sort_clause(model, params: PageParams, allowed: Dict[str, Any], default: str = "createdAt"):
    """
    Resolve ``sortBy`` against a whitelist of column names (or expressions).
    Unknown fields are rejected rather than silently ignored.
    """
    field = params.sortBy or default
    if field not in allowed:
        raise APIError(
            400,
            f"Cannot sort by '{field}'",
            "INVALID_SORT_FIELD",
            field="sortBy",
            details=[{"field": "sortBy", "message": f"Allowed values: {', '.join(allowed)}", "value": field}],
        )
    column = allowed[field]
    if column is None:
        column = getattr(model, field)
    ordered = column.asc() if params.sortOrder == "asc" else column.desc()
    # stable order for equal keys
    return [ordered, model.id.desc()]


def rank(column, ranks: Dict[str, int]):
    """CASE expression mapping enum values to a sortable rank."""
    return case(ranks, value=column, else_=0)


async def paginate(db: AsyncSession, stmt, params: PageParams, order_by) -> dict:
    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    result = await db.execute(stmt.order_by(*order_by).offset(params.offset).limit(params.limit))
    return {
        "items": result.scalars().all(),
        "pagination": {
            "page": params.page,
            "limit": params.limit,
            "total": total,
            "pages": math.ceil(total / params.limit) if total else 0,
        },
    }
