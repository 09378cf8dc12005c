"""Application settings and configuration."""

from functools import lru_cache
from typing import ClassVar, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Entity Reconciler", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    host: str = Field(default="0.0.0.0", description="Host to bind to")
    port: int = Field(default=8000, description="Port to bind to")
    log_level: str = Field(default="INFO", description="Root logging level")

    # CORS
    allowed_origins: list[str] = Field(
        default=[
            "http://localhost:3000",
            "http://localhost:8080",
            "http://localhost:5173",
        ],
        description="Allowed CORS origins",
    )

    # Graph backend
    graph_backend: Literal["age", "memory"] = Field(
        default="age",
        description="Graph store implementation: PostgreSQL/AGE or in-process memory",
    )

    # PostgreSQL Database
    postgres_user: str = Field(default="admin", description="PostgreSQL user")
    postgres_password: str = Field(
        default="supersecretpassword", description="PostgreSQL password"
    )
    postgres_host: str = Field(default="localhost", description="PostgreSQL host")
    postgres_port: int = Field(default=5432, description="PostgreSQL port")
    postgres_db: str = Field(default="graph_db", description="PostgreSQL database name")
    test_postgres_db: str = Field(
        default="graph_db_test", description="PostgreSQL test database name"
    )
    age_graph_name: str = Field(default="entities", description="AGE graph name")
    pool_min_size: int = Field(default=5, description="Minimum pool connections")
    pool_max_size: int = Field(default=20, description="Maximum pool connections")

    # Optimistic concurrency
    merge_retry_max_attempts: int = Field(
        default=20, ge=1, description="Attempt cap for optimistic retries"
    )
    merge_retry_base_delay: float = Field(
        default=0.05, ge=0, description="First backoff delay in seconds"
    )
    merge_retry_backoff_ratio: float = Field(
        default=1.5, ge=1, description="Backoff multiplier per attempt"
    )
    merge_retry_max_delay: float = Field(
        default=2.0, ge=0, description="Backoff cap in seconds"
    )
    merge_retry_jitter: float = Field(
        default=0.05, ge=0, description="Upper bound of random jitter in seconds"
    )
    merge_retry_deadline: float | None = Field(
        default=30.0, description="Wall-clock bound on one retry loop in seconds"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
