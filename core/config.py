"""
Configuration settings for iVisit Emergency Backend.

Uses Pydantic Settings for environment variable management.
"""

import os
from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Environment
    ENV: str = Field(default="development", env="ENV")
    DEBUG: bool = Field(default=False, env="DEBUG")
    LOG_LEVEL: str = Field(default="INFO", env="LOG_LEVEL")

    # Logging Control
    ENABLE_FILE_LOGGING: bool = Field(default=True, env="ENABLE_FILE_LOGGING")
    ENABLE_REQUEST_LOGGING: bool = Field(default=True, env="ENABLE_REQUEST_LOGGING")

    # Application
    APP_NAME: str = Field(default="iVisit Emergency Backend", env="APP_NAME")
    VERSION: str = Field(default="1.0.0", env="VERSION")

    # Server
    HOST: str = Field(default="0.0.0.0", env="HOST")
    PORT: int = Field(default=8000, env="PORT")

    origins: List[str] = [
        "http://localhost:8081",  # expo dev client
        "http://localhost:19006",
    ]

    DATABASE_URL: Optional[str] = Field(default=None, env="DATABASE_URL")
    PRODUCTION_DATABASE_URL: Optional[str] = Field(default=None, env="PRODUCTION_DATABASE_URL")

    @property
    def database_url(self) -> str:
        if self.ENV == "development":
            return self.DATABASE_URL or ""
        return self.PRODUCTION_DATABASE_URL or ""

    DATABASE_POOL_SIZE: int = Field(default=10, env="DATABASE_POOL_SIZE")
    DATABASE_MAX_OVERFLOW: int = Field(default=20, env="DATABASE_MAX_OVERFLOW")

    # Redis backs the local request cache and the realtime channels
    REDIS_URL: str = Field(default="redis://localhost:6379/0", env="REDIS_URL")
    CELERY_BROKER_URL: str = Field(default="redis://localhost:6379/0", env="CELERY_BROKER_URL")
    CELERY_RESULT_BACKEND: str = Field(default="redis://localhost:6379/0", env="CELERY_RESULT_BACKEND")

    # Push delivery is owned by a separate worker, we only hand off by task name
    PUSH_NOTIFICATION_TASK: str = Field(
        default="send_push_notification",
        env="PUSH_NOTIFICATION_TASK"
    )
    CELERY_NOTIFICATION_QUEUE: str = Field(default="notifications", env="CELERY_NOTIFICATION_QUEUE")

    LOCAL_STORAGE_PREFIX: str = Field(default="@ivisit_", env="LOCAL_STORAGE_PREFIX")

    # Bottom sheet geometry (points)
    TAB_BAR_HEIGHT: int = Field(default=85, env="TAB_BAR_HEIGHT")
    SEARCH_BAR_AREA: int = Field(default=120, env="SEARCH_BAR_AREA")
    MARGIN_ABOVE_TAB_BAR: int = Field(default=16, env="MARGIN_ABOVE_TAB_BAR")
    SHEET_SNAP_INDEX_AFTER_ACTION: int = Field(default=1, env="SHEET_SNAP_INDEX_AFTER_ACTION")

    # Sentry (Optional)
    SENTRY_DSN: Optional[str] = Field(default=None, env="SENTRY_DSN")
    SENTRY_ENVIRONMENT: str = Field(default="development", env="SENTRY_ENVIRONMENT")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


# Create settings instance
settings = Settings()


def get_env_file() -> str:
    """Get the appropriate environment file based on ENV setting."""
    env_file = f".env.{settings.ENV}"
    if os.path.exists(env_file):
        return env_file
    return ".env"


# Update settings with environment-specific file
settings = Settings(_env_file=get_env_file())
