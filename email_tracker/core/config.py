# Pydantic settings

from fastapi import Request
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
import os


class Settings(BaseSettings):
    """Application settings"""

    # App
    app_name: str = "Email Tracker API"
    debug: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///./email_tracker.db"
    create_schema: bool = True

    # Public base URL for generated tracking links
    base_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("base_url", "render_external_url")
    )

    # Redis
    redis_url: str | None = "redis://localhost:6379/0"

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit_requests: int = 100
    rate_limit_period: int = 60  # seconds

    # API Key (optional)
    api_key: str | None = None

    # Query limits
    listing_limit: int = 100
    trend_days: int = 7

    model_config = SettingsConfigDict(
        # Use .env.local if it exists (for local dev), otherwise .env (for Docker)
        env_file=".env.local" if os.path.exists(".env.local") else ".env",
        case_sensitive=False,
        populate_by_name=True
    )


settings = Settings()


def get_settings(request: Request) -> Settings:
    """Dependency for the settings the running app was built with"""
    return request.app.state.settings
