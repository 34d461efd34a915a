import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from smartlife.core.config import settings
from smartlife.core.errors import register_exception_handlers
from smartlife.core.logging import configure_logging
from smartlife.core.middleware import install_request_middleware
from smartlife.core.rate_limit import RateLimitMiddleware, build_counter_store
from smartlife.database import close_db, get_storage_status, init_db

from smartlife.api.api import api_router

logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await init_db()
    app.state.rate_limit_store = await build_counter_store()
    logger.info(f"{settings.PROJECT_NAME} started ({settings.ENVIRONMENT})")
    yield
    await app.state.rate_limit_store.close()
    await close_db()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

register_exception_handlers(app)

if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(RateLimitMiddleware)

install_request_middleware(app)

# Set all CORS enabled origins
if settings.CORS_ORIGIN_URLS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGIN_URLS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health")
async def health_check():
    return {
        "success": True,
        "message": "Server is running",
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "uptime": round(time.monotonic() - STARTED_AT, 3),
        "environment": settings.ENVIRONMENT,
        "storage": await get_storage_status(),
        "version": settings.VERSION,
    }


@app.get(settings.API_V1_STR)
def api_index():
    api = settings.API_V1_STR
    return {
        "success": True,
        "message": f"{settings.PROJECT_NAME} v{settings.VERSION}",
        "endpoints": {
            "auth": f"{api}/auth",
            "users": f"{api}/users",
            "tasks": f"{api}/tasks",
            "goals": f"{api}/goals",
            "health": f"{api}/health",
            "finance": f"{api}/finance",
            "notes": f"{api}/notes",
            "dashboard": f"{api}/dashboard",
            "sync": f"{api}/sync",
        },
        "documentation": "/docs",
    }


@app.get("/")
def root():
    return {"message": f"Welcome to {settings.PROJECT_NAME}"}
