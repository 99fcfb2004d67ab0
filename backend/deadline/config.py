"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=("../.env", ".env"),  # Check parent dir first, then current
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "DEADLINE API"
    app_version: str = "1.0.0"
    debug: bool = False

    # API
    api_prefix: str = "/api"
    cors_origins: list[str] = ["http://localhost:3000"]
    api_secret_key: str | None = None

    # Database
    database_url: str = "sqlite+aiosqlite:///./instance/deadline.db"

    # Redis (for ARQ task queue)
    redis_url: str = "redis://localhost:6379"

    # Google Custom Search
    google_api_key: str | None = None
    google_search_engine_id: str | None = None
    search_page_count: int = 3
    search_page_delay: float = 0.3  # seconds between result pages
    search_timeout: float = 10.0
    excluded_domains: list[str] = [
        "reddit.com",
        "twitter.com",
        "facebook.com",
        "youtube.com",
        "instagram.com",
        "tiktok.com",
        "pinterest.com",
    ]

    # LLM (Gemini)
    gemini_api_key: str | None = None
    llm_model: str = "gemini-2.5-flash"
    llm_temperature: float = 0.3
    llm_max_tokens: int = 8192

    # Pipeline settings
    scrape_timeout: float = 12.0
    scrape_max_articles: int = 18
    min_article_length: int = 100
    update_fetch_timeout: float = 10.0
    update_search_page_count: int = 1
    updates_per_date_cap: int = 3

    # Front end cache revalidation
    frontend_base_url: str | None = None
    revalidate_timeout: float = 8.0

    # Logging
    log_level: str = "INFO"
    log_file: str = "logs/app.log"
    log_error_file: str = "logs/errors.log"
    log_rotation_size: str = "10 MB"
    log_retention_days: int = 30

    # Scheduled update sweep
    enable_cron: bool = False
    update_sweep_hour: int = 4

    @property
    def database_path(self) -> Path:
        """Extract the database file path from the URL."""
        # Handle sqlite+aiosqlite:///./instance/deadline.db format
        path_str = self.database_url.replace("sqlite+aiosqlite:///", "")
        return Path(path_str)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
