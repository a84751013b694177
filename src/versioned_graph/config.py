"""
Configuration for the versioned graph.

Each concern has its own settings class with a dedicated env prefix:

    VGRAPH_STORE_*   backend selection and Redis connection
    VGRAPH_GRAPH_*   graph layout in the store
    VGRAPH_RETRY_*   optimistic transaction retry budget

``settings`` is the process-wide instance read by the factories.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .graph.retry import RetryPolicy

UNBOUNDED_KEYWORDS = frozenset({"", "none", "null", "unbounded"})


class StoreSettings(BaseSettings):
    """Versioned store backend settings."""

    model_config = SettingsConfigDict(env_prefix="VGRAPH_STORE_", extra="ignore")

    backend: Literal["memory", "redis"] = Field(default="memory", description="Store backend")
    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, ge=1, le=65535, description="Redis port")
    password: SecretStr | None = Field(default=None, description="Redis password")
    db: int = Field(default=0, ge=0, description="Redis logical database")
    max_connections: int = Field(default=16, ge=1, le=512, description="Connection pool size")
    socket_timeout: float | None = Field(default=5.0, gt=0, description="Per-command socket timeout (seconds)")
    key_prefix: str = Field(default="vgraph:", description="Prefix applied to every Redis key")


class GraphSettings(BaseSettings):
    """Graph layout settings."""

    model_config = SettingsConfigDict(env_prefix="VGRAPH_GRAPH_", extra="ignore")

    root: str = Field(default="/graph", min_length=2, description="Key under which node records live")

    @field_validator("root")
    @classmethod
    def _root_is_absolute(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError(f"Graph root must start with '/': {v!r}")
        return v.rstrip("/")


class RetrySettings(BaseSettings):
    """Retry budget for connect/reweight transactions."""

    model_config = SettingsConfigDict(env_prefix="VGRAPH_RETRY_", extra="ignore")

    # None = retry forever
    max_attempts: int | None = Field(default=64, ge=1)
    backoff_base: float = Field(default=0.005, ge=0.0, description="Initial backoff (seconds), 0 disables")
    backoff_max: float = Field(default=0.25, ge=0.0, description="Backoff ceiling (seconds)")

    @field_validator("max_attempts", mode="before")
    @classmethod
    def _unbounded_keywords(cls, v: Any) -> Any:
        # VGRAPH_RETRY_MAX_ATTEMPTS=none (or empty) selects unbounded retries
        if isinstance(v, str) and v.strip().lower() in UNBOUNDED_KEYWORDS:
            return None
        return v

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            backoff_base=self.backoff_base,
            backoff_max=self.backoff_max,
        )


class Settings(BaseModel):
    """Aggregate of all settings groups."""

    store: StoreSettings = Field(default_factory=StoreSettings)
    graph: GraphSettings = Field(default_factory=GraphSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)


settings = Settings()
