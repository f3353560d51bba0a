"""Configuration for the task service."""

from datetime import timedelta
from typing import List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Task service configuration.

    All settings can be overridden via environment variables or a `.env`
    file (`DATABASE_PATH`, `JWT_SECRET_KEY`, ...).
    """

    database_path: str = Field(default="todo.db")

    # JWT Authentication
    jwt_secret_key: str = Field(default="change-me")
    jwt_algorithm: str = Field(default="HS256")
    jwks_url: Optional[str] = Field(default=None)
    jwt_audience: Optional[str] = Field(default=None)
    jwt_issuer: Optional[str] = Field(default=None)
    jwt_user_claim: str = Field(default="sub")

    # Marker added to created_at to produce completed_at
    task_completion_offset_seconds: int = Field(default=86400, ge=0)

    # Connection pool
    db_max_open_conns: int = Field(default=100, ge=1)
    db_max_idle_conns: int = Field(default=10, ge=1)
    db_conn_max_lifetime: float = Field(default=3600.0)
    db_pool_timeout: float = Field(default=30.0, gt=0)
    request_timeout_seconds: float = Field(default=10.0, gt=0)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)

    # CORS
    cors_origins: str = Field(default="")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value):
        return value.upper() if isinstance(value, str) else value

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string into list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def task_completion_offset(self) -> timedelta:
        return timedelta(seconds=self.task_completion_offset_seconds)
