"""Application configuration via environment variables."""

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Service configuration loaded from environment variables."""

    model_config = {"env_prefix": ""}

    # Server
    host: str = Field(default="0.0.0.0", description="Server bind host")
    port: int = Field(default=8000, description="Server bind port")
    log_level: str = Field(default="info", description="Log level")

    # Post store
    store_backend: Literal["memory", "redis"] = Field(
        default="memory", description="Post store backend: 'memory' or 'redis'"
    )
    redis_url: str | None = Field(
        default=None, description="Redis URL (required when STORE_BACKEND=redis)"
    )
    redis_key_prefix: str = Field(default="post:", description="Key prefix for post hashes")
    redis_index_key: str = Field(
        default="posts", description="Sorted set indexing post ids by creation time"
    )

    @model_validator(mode="after")
    def _check_store(self) -> "Settings":
        if self.store_backend == "redis" and not self.redis_url:
            raise ValueError("REDIS_URL is required when STORE_BACKEND=redis")
        return self
