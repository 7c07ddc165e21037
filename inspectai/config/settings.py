"""Configuration settings for the InspectAI proposal service."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    environment: str = Field(default="development", description="Environment: development/production")
    log_level: str = Field(default="INFO", description="Logging level")
    version: str = Field(default="1.0.0", description="Application version")

    # Draft / history storage
    draft_key: str = Field(
        default="inspectai_proposal_draft", description="Storage slot holding the shared proposal draft"
    )
    history_key: str = Field(
        default="inspectai_history", description="Storage slot holding the report history"
    )
    storage_dir: Optional[str] = Field(
        default=None, description="Directory for file-backed storage (in-memory when unset)"
    )
    history_limit: int = Field(default=50, description="Maximum history entries kept")
    retention_days: int = Field(
        default=30, description="Days before the retention sweep removes a history entry"
    )

    # Report generation
    anthropic_api_key: Optional[str] = Field(
        default=None, description="Anthropic API key for photo analysis and summaries"
    )
    default_model: str = Field(
        default="claude-3-5-sonnet-20241022", description="Model used for report generation"
    )
    max_photos: int = Field(default=8, description="Photos analyzed when analyze-all is off")
    photo_concurrency: int = Field(default=4, description="Parallel photo analyses")
    request_timeout_seconds: float = Field(default=60.0, description="Timeout per model request")
    max_retries: int = Field(default=2, description="Retries per model request")
    max_tokens: int = Field(default=2048, description="Maximum tokens for model responses")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
