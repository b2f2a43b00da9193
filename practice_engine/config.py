"""
Application configuration using pydantic-settings.
Loads from environment variables with .env file support.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./practice.db"

    # Application
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR

    # API Settings
    api_v1_prefix: str = "/api/v1"
    project_name: str = "Practice Session Engine"
    version: str = "1.0.0"

    # Practice
    question_bank_path: str = "data/question_bank.json"
    practice_background_recording: bool = False  # record attempts as asyncio tasks
    weak_section_max_score: int = 3  # best score at or below this is "weak"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
