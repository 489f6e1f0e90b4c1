"""Application configuration management."""
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Practice engine settings loaded from environment variables."""

    PROJECT_NAME: str = "Language Drill"

    VALIDATION_DEBOUNCE_MS: int = Field(
        100,
        ge=0,
        description="Window (ms) in which repeated validations of one field are ignored",
    )
    STATISTICS_ERROR_CLEAR_MS: int = Field(
        5000, ge=0, description="Lifetime (ms) of a transient statistics error message"
    )

    DEFAULT_SORT_OPTION: str = Field("none", description="Sort option used by new sessions")
    DEFAULT_DISPLAY_COUNT: int | str = Field(
        10, description="Number of visible items for new sessions (10, 20, 30 or 'all')"
    )
    DEFAULT_MASTERY_THRESHOLD: int = Field(
        10, description="Net score (correct - wrong) at which an item counts as mastered"
    )
    DEFAULT_EXCLUDE_MASTERED: bool = True

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parent.parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


settings = get_settings()
