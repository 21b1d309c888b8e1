"""Application configuration using Pydantic BaseSettings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.constants import (
    BROWSER_PAGE_LOAD_TIMEOUT_SECONDS,
    BROWSER_SETTLE_DELAY_SECONDS,
    DEFAULT_LIBRE_TRANSLATE_URL,
    DEFAULT_SCHEDULER_TIMEZONE,
    DEFAULT_SOURCE_LANGUAGE,
    DEFAULT_TARGET_LANGUAGE,
    DEFAULT_VIEWPORT_HEIGHT,
    DEFAULT_VIEWPORT_WIDTH,
    TRANSLATION_HTTP_TIMEOUT_SECONDS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        # Load .env first, then .env.local (for local/test overrides)
        # Later files override earlier ones, so .env.local takes precedence
        env_file=[".env", ".env.local"],
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Target page and schedule
    target_url: str | None = Field(
        default=None, description="Page scraped on every run"
    )
    scrape_cron: str | None = Field(
        default=None, description="Five-field cron expression, e.g. '0 9 * * *'"
    )
    scheduler_timezone: str = Field(
        default=DEFAULT_SCHEDULER_TIMEZONE,
        description="Timezone the cron expression is evaluated in",
    )

    # LibreTranslate Configuration
    libre_translate_url: str = Field(
        default=DEFAULT_LIBRE_TRANSLATE_URL,
        description="LibreTranslate-compatible /translate endpoint",
    )
    libre_translate_api_key: str | None = Field(
        default=None,
        description="API key (optional, for premium or self-hosted instances)",
    )
    source_language: str = Field(default=DEFAULT_SOURCE_LANGUAGE)
    target_language: str = Field(default=DEFAULT_TARGET_LANGUAGE)
    translation_timeout_seconds: float = Field(
        default=TRANSLATION_HTTP_TIMEOUT_SECONDS,
        description="Timeout for a single translation call (seconds)",
    )

    # Notion Configuration
    notion_api_key: str | None = Field(
        default=None, description="Notion internal integration token"
    )
    notion_database_id: str | None = Field(
        default=None, description="Database receiving one page per run"
    )

    # ==========================================================================
    # Browser Configuration
    # ==========================================================================

    browser_page_load_timeout_seconds: float = Field(
        default=BROWSER_PAGE_LOAD_TIMEOUT_SECONDS,
        description="Timeout for browser page loads (seconds)",
    )
    browser_settle_delay_seconds: float = Field(
        default=BROWSER_SETTLE_DELAY_SECONDS,
        description="Wait after network idle before reading the page (seconds)",
    )
    browser_viewport_width: int = Field(default=DEFAULT_VIEWPORT_WIDTH)
    browser_viewport_height: int = Field(default=DEFAULT_VIEWPORT_HEIGHT)
    browser_headless: bool = Field(default=True)

    # Environment
    env: Literal["local", "railway", "prod"] = Field(
        default="local", description="Current environment"
    )
    log_level: str = Field(default="INFO", description="Python logging level")
    port: int = Field(default=3000, description="HTTP port for uvicorn")

    # Sentry Configuration
    sentry_dsn: str | None = Field(
        default=None, description="Sentry DSN for error tracking (optional)"
    )
    sentry_traces_sample_rate: float = Field(
        default=1.0, description="Sentry traces sample rate (0.0 to 1.0)"
    )

    # Logfire Configuration
    logfire_token: str | None = Field(
        default=None, description="Pydantic Logfire token for observability"
    )

    @property
    def notion_configured(self) -> bool:
        return bool(self.notion_api_key and self.notion_database_id)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
