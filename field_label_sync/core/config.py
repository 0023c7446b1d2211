"""
Field Label Sync application configuration.
Manages all configurations through environment variables.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import Optional


SYNC_MODES = ("batch", "fanout")
CACHE_BACKENDS = ("redis", "memory")


class Settings(BaseSettings):
    """Application settings using Pydantic Settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # Application Settings
    APP_NAME: str = "Field Label Sync"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # API Settings
    API_V1_STR: str = "/api/v1"
    HOST: str = "0.0.0.0"
    PORT: int = 3002

    # Jira Configuration
    JIRA_BASE_URL: str = "https://your-domain.atlassian.net"
    JIRA_USERNAME: str = ""
    JIRA_API_TOKEN: str = ""
    JIRA_CUSTOM_FIELD_ID: str = "customfield_10107"
    JIRA_REQUEST_TIMEOUT_SECONDS: float = 30.0

    # Page sizes per Jira collection
    CONTEXTS_PAGE_SIZE: int = 50
    PROJECT_MAPPINGS_PAGE_SIZE: int = 50
    OPTIONS_PAGE_SIZE: int = 100
    PROJECT_SEARCH_PAGE_SIZE: int = 50
    # Jira accepts at most 50 ids per project search call
    PROJECT_SEARCH_BATCH_SIZE: int = 50

    # Synchronization
    SYNC_MODE: str = "batch"
    SYNC_INTERVAL_MINUTES: int = 60
    SYNC_MERGE_LOCK_ENABLED: bool = False
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_TIMEZONE: str = "UTC"

    # Cache Configuration
    CACHE_BACKEND: str = "redis"
    REDIS_URL: Optional[str] = "redis://localhost:6379/0"
    LABELS_CACHE_KEY: str = "all-context-options"
    QUERY_RESULT_LIMIT: int = 20

    # RabbitMQ Configuration
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "label_sync"
    RABBITMQ_PASSWORD: str = "label_sync"
    RABBITMQ_VHOST: str = "label_sync"
    SYNC_JOBS_QUEUE: str = "label_sync_jobs"
    CONTEXT_OPTIONS_QUEUE: str = "label_sync_context_options"

    @field_validator("SYNC_MODE")
    @classmethod
    def _validate_sync_mode(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in SYNC_MODES:
            raise ValueError(f"SYNC_MODE must be one of: {', '.join(SYNC_MODES)}")
        return value

    @field_validator("CACHE_BACKEND")
    @classmethod
    def _validate_cache_backend(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in CACHE_BACKENDS:
            raise ValueError(f"CACHE_BACKEND must be one of: {', '.join(CACHE_BACKENDS)}")
        return value


# Global settings instance (lazy initialization)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Returns the settings instance with lazy initialization.

    Configuration precedence:
    1) Environment variables (highest priority)
    2) Local .env file
    3) Defaults declared on Settings
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None
