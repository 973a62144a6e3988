# research_tasks/config.py
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Local token issuer
    SECRET_KEY: str = Field("change-me-in-production")
    ALGORITHM: str = Field("HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(60 * 24)

    DATABASE_URL: str = Field("sqlite+aiosqlite:///./research_tasks.db")
    SQL_ECHO: bool = Field(False)

    # "local" → our own JWTs, "firebase" → Firebase ID tokens
    AUTH_PROVIDER: str = Field("local")
    FIREBASE_CREDENTIALS_FILE: Optional[str] = None
    FIREBASE_PROJECT_ID: Optional[str] = None
    IDENTITY_TIMEOUT_SECONDS: float = Field(10.0)

    # "local" → UPLOAD_DIR on disk, "cloudinary" → remote object storage
    STORAGE_BACKEND: str = Field("local")
    UPLOAD_DIR: str = Field("uploads")
    CLOUDINARY_CLOUD_NAME: Optional[str] = None
    CLOUDINARY_API_KEY: Optional[str] = None
    CLOUDINARY_API_SECRET: Optional[str] = None
    CLOUDINARY_FOLDER: str = Field("research-tasks")
    UPLOAD_TIMEOUT_SECONDS: float = Field(30.0)
    MAX_UPLOAD_SIZE: int = Field(5 * 1024 * 1024)
    MAX_FILES_PER_TASK: int = Field(5)

    # Comma-separated origins. If empty → CORS middleware is not installed.
    ALLOWED_ORIGINS: Optional[str] = None

    PORT: int = Field(5000)
    ENVIRONMENT: str = Field("development")
    LOG_LEVEL: str = Field("INFO")

    # Daily "you haven't submitted yet" reminder
    REMINDER_ENABLED: bool = Field(False)
    REMINDER_HOUR_UTC: int = Field(18, ge=0, le=23)
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = Field(587)
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = Field(True)
    SMTP_FROM: str = Field("no-reply@research-tasks.local")

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }

    @property
    def effective_database_url(self) -> str:
        url = self.DATABASE_URL
        # Ensure asyncpg is used
        if url.startswith("postgresql://") and "+asyncpg" not in url:
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    @property
    def allowed_origins(self) -> List[str]:
        if not self.ALLOWED_ORIGINS:
            return []
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    return Settings()


def clear_settings_cache() -> None:
    get_settings.cache_clear()
