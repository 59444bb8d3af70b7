"""Application configuration and settings."""
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the application workflow engine."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    database_url: str = "sqlite+aiosqlite:///./data/app.db"
    data_directory: Path = Path("data")
    document_storage_directory: Path = Path("data/storage")
    document_bucket: str = "application-documents"
    document_public_base_url: str = "http://localhost:8000/storage"

    max_documents: int = 3
    max_document_bytes: int = 5 * 1024 * 1024

    min_cover_letter_length: int = 100
    max_cover_letter_length: int = 1000

    profile_min_skills: int = 3
    quick_apply_min_profile_strength: int = 50
    quick_apply_cover_letter: str = (
        "I am interested in this opportunity and would welcome the chance to contribute. "
        "Please find my resume attached for your review."
    )

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    settings = Settings()
    settings.data_directory.mkdir(parents=True, exist_ok=True)
    settings.document_storage_directory.mkdir(parents=True, exist_ok=True)
    return settings


settings = get_settings()
