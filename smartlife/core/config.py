from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "Smart Life Manager API"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api"
    ENVIRONMENT: str = "development" # 'development', 'production' or 'test'

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./smartlife.db"
    DATABASE_ECHO: bool = False

    @field_validator("DATABASE_URL")
    @classmethod
    def assemble_db_connection(cls, v: str) -> str:
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql+asyncpg://", 1)
        if v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    # Security
    SECRET_KEY: str = "your-secret-key-here" # Change in production
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 # 24 hours
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    PASSWORD_RESET_EXPIRE_MINUTES: int = 60
    COOKIE_SECURE: bool = False # Set to True in production

    @field_validator("CORS_ORIGIN_URLS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: str | list[str]) -> list[str] | str:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    CORS_ORIGIN_URLS: list[str] | str = ["http://localhost:3000"]

    # Rate limiting (fixed window)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    RATE_LIMIT_MAX_REQUESTS: int = 100
    AUTH_RATE_LIMIT_MAX_REQUESTS: int = 5
    PASSWORD_RESET_RATE_LIMIT_MAX_REQUESTS: int = 3
    SEARCH_RATE_LIMIT_MAX_REQUESTS: int = 30
    TRUST_PROXY: bool = True
    REDIS_URL: Optional[str] = None

    # Requests
    MAX_REQUEST_SIZE: str = "10mb"
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # Extra
    LOG_LEVEL: str = "INFO"
    PORT: int = 5000

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

settings = Settings()
