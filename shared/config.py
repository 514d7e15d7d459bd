"""
Shared configuration management for the Cache Gateway services.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local", description="Deployment environment")
    log_level: str = Field(default="info", description="Log level")

    # Backing store
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    store_backend: str = Field(default="redis", description="Cache store backend: redis or memory")
    key_prefix: str = Field(default="", description="Prefix applied to every store key")


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
