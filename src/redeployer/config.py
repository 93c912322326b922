"""Configuration for the redeployer service."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service settings from environment.

    All fields have defaults suitable for local development; production
    deployments override them through environment variables or `.env`.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./redeployer.db",
        description="SQLAlchemy async connection URL",
        examples=["sqlite+aiosqlite:////var/lib/redeployer/services.db"],
    )

    # HTTP
    app_host: str = "127.0.0.1"
    app_port: int = Field(default=8080, ge=1, le=65535)

    # Service directories
    services_repo_dir: Path = Field(
        default=Path("./services/repos"),
        description="Root of the staging clones, one directory per service name",
    )
    services_live_dir: Path = Field(
        default=Path("./services/live"),
        description="Root of the live directories docker compose runs from",
    )
    compose_file_name: str = "docker-compose.yaml"

    # Event bus
    event_bus_capacity: int = Field(
        default=100,
        ge=1,
        description="Pending events buffered per subscriber before the oldest are dropped",
    )

    # Serialize deployments of the same service id (off: matches unguarded behavior)
    deploy_lock_enabled: bool = False

    # Logging configuration
    service_name: str = Field(
        default="redeployer",
        description="Service name for structured logging",
    )
    log_format: Literal["json", "console"] = Field(
        default="console",
        description="Log output format",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper_v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
