"""Environment-driven configuration with Pydantic v2."""

from typing import List, Literal, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from constants import DEFAULT_CACHE_PREFIX, DEFAULT_QUERY_CACHE_PREFIX, FIRESTORE_MAX_BATCH_SIZE


class Settings(BaseSettings):
    """Application settings driven entirely by environment variables."""

    # Server Configuration
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3010, ge=1024, le=65535)
    debug: bool = Field(default=False)
    workers: int = Field(default=1, ge=1, le=8)
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:5173"])

    # Cache Configuration
    redis_url: Optional[str] = Field(default=None)
    redis_enabled: bool = Field(default=False)
    cache_ttl: int = Field(default=3600, ge=1)
    cache_prefix: str = Field(default=DEFAULT_CACHE_PREFIX, min_length=1)
    cache_sweep_interval: int = Field(default=60, ge=0)  # 0 disables the sweeper

    # Query Optimizer
    query_cache_enabled: bool = Field(default=True)
    query_cache_ttl: int = Field(default=300, ge=1)  # 5 minutes
    query_cache_prefix: str = Field(default=DEFAULT_QUERY_CACHE_PREFIX, min_length=1)
    batch_size: int = Field(default=FIRESTORE_MAX_BATCH_SIZE, ge=1, le=FIRESTORE_MAX_BATCH_SIZE)
    max_concurrent_queries: int = Field(default=10, ge=1, le=1000)
    enable_indexing: bool = Field(default=True)

    # Query parameter normalization
    query_max_limit: int = Field(default=100, ge=1)
    query_default_limit: int = Field(default=20, ge=1)
    query_max_page_size: int = Field(default=50, ge=1)

    # Document Store
    document_store: Literal["firestore", "memory"] = Field(default="memory")
    firestore_project_id: Optional[str] = Field(default=None)
    firestore_database: str = Field(default="(default)")
    firestore_credentials_file: Optional[str] = Field(default=None)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.debug

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return not self.debug

    @property
    def use_redis(self) -> bool:
        """Redis is only attempted when explicitly enabled and a URL is configured."""
        return self.redis_enabled and bool(self.redis_url)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "env_parse_none_str": "none",
        "env_nested_delimiter": "__",
    }
