# marketplace/core/config.py

import os
from functools import lru_cache

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings.
    Loads values from environment variables (.env file)
    """
    # Database settings
    DATABASE_URL: str = ""

    # Security
    SECRET_KEY: str = "change-me"
    TOKEN_TTL_SECONDS: int = 60 * 60 * 24

    # Order workflow
    STOCK_RESERVATION_RETRIES: int = 3  # compare-and-decrement attempts per line item
    STATUS_UPDATE_RETRIES: int = 3
    SERVICEABLE_PIN_LENGTH: int = 6
    NOTIFY_ON_ORDER: bool = True

    # Reports
    TOP_SELLING_DEFAULT_LIMIT: int = 5

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    model_config = ConfigDict(
        env_file=os.environ.get('ENV_FILE', '.env') if os.path.exists('.env') else None,
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def async_database_url(self) -> str:
        """DATABASE_URL rewritten for the asyncpg driver when needed."""
        url = self.DATABASE_URL or os.environ.get('DATABASE_URL', '')
        if url.startswith('postgresql://'):
            url = url.replace('postgresql://', 'postgresql+asyncpg://', 1)
        return url


@lru_cache()
def get_settings():
    """Cached settings to avoid loading .env file for every request"""
    return Settings()


def clear_settings_cache():
    """Clear the settings cache - useful when switching between environments"""
    get_settings.cache_clear()
