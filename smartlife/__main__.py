import uvicorn

from smartlife.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "smartlife.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower(),
    )
