"""
Shared configuration management for the headless content gateway.
"""

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="HEADLESS_",
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    log_format: str = Field(default="dev", description="dev/console or json/combined")

    # Listener
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, validation_alias=AliasChoices("HEADLESS_PORT", "PORT", "port"))

    # Cache store
    cache_backend: str = Field(default="redis", description="redis or memory")
    redis_host: str = Field(default="localhost")
    redis_port: int = Field(default=6379)
    redis_db: int = Field(default=0)
    redis_password: Optional[str] = Field(default=None)
    redis_socket_timeout: float = Field(default=5.0)


class ContentConfig(BaseConfig):
    """Content service configuration."""

    service_name: str = "content"

    # Upstream content API
    api_base: str = Field(default="http://localhost:8080/api/")
    upstream_timeout: float = Field(default=10.0)

    # Static assets
    static_dir: str = Field(default="public")
    static_prefix: str = Field(default="/static")
    static_max_age: int = Field(default=345600)

    # Templates
    templates_dir: str = Field(default="templates")
    error_template: str = Field(default="fourofour.html")

    # Cache-aside behaviour
    cache_key_prefix: str = Field(default="content")
    cache_ttl_seconds: int = Field(default=3600)
    cache_max_age_seconds: int = Field(default=345600)


def get_config(**overrides) -> ContentConfig:
    """Get configuration for the content service."""
    return ContentConfig(**overrides)
