"""
Shared configuration management for the Taskboard backend.
"""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="TASKBOARD_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    log_json: bool = Field(default=True)

    # HTTP
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5000)
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # Identity context
    jwt_secret: str = Field(default="taskboard-dev-secret")
    jwt_algorithm: str = Field(default="HS256")

    # Persistence gateway
    storage_backend: str = Field(default="memory")
    postgres_dsn: str = Field(default="postgres://localhost:5432/taskboard")

    # Notification relay
    max_ws_connections: int = Field(default=1000)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str


def get_config(service_name: str, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, **overrides)
