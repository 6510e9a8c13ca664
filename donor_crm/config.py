"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) — single instance per process

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings: works out-of-the-box with docker-compose
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://donor_crm:donor_crm@db:5432/donor_crm"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosting providers hand out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Anthropic
    anthropic_api_key: str = "sk-ant-placeholder"
    anthropic_max_retries: int = 3
    anthropic_timeout_seconds: int = 120
    anthropic_base_delay_ms: int = 1000
    anthropic_max_delay_ms: int = 60_000
    email_model: str = "claude-sonnet-4-5"
    email_max_tokens: int = 4000
    research_model: str = "claude-haiku-4-5-20251001"
    research_max_tokens: int = 2000

    # Google Custom Search
    google_search_api_key: str = ""
    google_search_engine_id: str = ""
    search_results_per_query: int = 6
    research_max_crawl_urls: int = 4

    # Crawler
    crawler_timeout_seconds: float = 10.0
    crawler_max_retries: int = 2
    crawler_max_chars: int = 50_000
    website_max_pages: int = 5

    # WhatsApp
    whatsapp_dedup_window_seconds: int = 300
    whatsapp_history_limit: int = 20

    # API
    cors_origins: list[str] = ["http://localhost:3000"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
