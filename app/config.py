"""Application configuration via environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Directory Submission API"
    port: int = 3001
    cors_origins: list[str] = ["*"]
    app_base_url: str = "https://backlinkbotai.com"

    # Primary store (Supabase / PostgREST)
    supabase_url: str | None = None
    supabase_service_key: str | None = None

    # LLM
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    openai_temperature: float = 0.7

    # Airtable mirror
    airtable_api_key: str | None = None
    airtable_base_id: str | None = None

    # Transactional email (Resend)
    resend_api_key: str | None = None
    email_from: str = "BacklinkBot <notifications@backlinkbotai.com>"

    # Sync scheduling
    sync_enabled: bool = True
    sync_interval_seconds: int = 300
    sync_batch_size: int = 10

    # Fetching
    fetch_timeout_seconds: float = 10.0
    browser_timeout_seconds: float = 30.0

    # Content normalizer caps
    max_main_content_chars: int = 5000
    max_headings: int = 20
    max_paragraphs: int = 20
    max_paragraph_chars: int = 1000
    max_links: int = 50
    max_link_text_chars: int = 200


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
