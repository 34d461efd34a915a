from sqlalchemy import func
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, select
from smartlife.core.config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        # In-memory sqlite lives as long as its single connection
        if url in ("sqlite+aiosqlite://", "sqlite+aiosqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {"pool_size": 20, "max_overflow": 0}


# Create async engine
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
    future=True,
    **_engine_kwargs(settings.DATABASE_URL)
)

# Async session factory
async_session_maker = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

async def get_db():
    async with async_session_maker() as session:
        yield session

async def init_db():
    # register every table on SQLModel.metadata
    import smartlife.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

async def close_db():
    await engine.dispose()


async def get_storage_status() -> dict:
    """Row counts per collection, reported by /health."""
    from smartlife.models import ENTITY_TABLES

    counts = {}
    async with async_session_maker() as session:
        for name, model in ENTITY_TABLES.items():
            result = await session.execute(select(func.count()).select_from(model))
            counts[name] = result.scalar_one()
    return {
        "type": engine.dialect.name,
        "status": "connected",
        "collections": list(ENTITY_TABLES.keys()),
        "counts": counts,
    }
