"""
Application configuration settings.
Loads from environment variables (and .env) with type checking.
"""

from typing import Optional, List
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application Metadata
    PROJECT_TITLE: str = "Abelana API"
    PROJECT_DESCRIPTION: str = "Backend API for the Abelana photo sharing app"
    PROJECT_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # or 'testing', 'production'

    # Database Configuration
    DATABASE_URL: str = "sqlite+aiosqlite:///./abelana.db"
    TEST_DATABASE_URL: Optional[str] = None
    SQL_ECHO: bool = False
    TRANSACTION_RETRIES: int = 3

    # Authentication
    SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    PUSH_TOKEN: Optional[str] = None

    # Logging
    LOG_LEVEL: str = "INFO"
    TRACE_GRAPH: bool = False

    # Timeline / moderation
    TIMELINE_BATCH_SIZE: int = 100
    REQUIRED_APPROVALS: int = 2

    # Deferred tasks
    TASK_WORKER_ENABLED: bool = True
    TASK_POLL_INTERVAL_SECONDS: float = 1.0
    TASK_BATCH_SIZE: int = 50
    TASK_MAX_ATTEMPTS: int = 5
    TASK_RETRY_DELAY_SECONDS: int = 30
    TASK_LEASE_SECONDS: int = 300

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        env_file_encoding="utf-8",
    )

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):
        if isinstance(v, str):
            return [item.strip() for item in v.split(",")]
        return v

    @field_validator("TIMELINE_BATCH_SIZE")
    @classmethod
    def validate_batch_size(cls, v):
        if v < 1 or v > 2000:
            raise ValueError("TIMELINE_BATCH_SIZE must be between 1 and 2000")
        return v

    @field_validator("REQUIRED_APPROVALS", "TRANSACTION_RETRIES", "TASK_MAX_ATTEMPTS")
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @property
    def async_database_url(self) -> str:
        """Database URL rewritten for the async drivers"""
        url = self.DATABASE_URL
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)
        if url.startswith("sqlite://"):
            return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return url


settings = Settings()
