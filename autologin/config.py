"""Application configuration using pydantic-settings."""

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/114.0.0.0 Safari/537.36"
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: Environment = Environment.DEVELOPMENT
    log_level: str = "INFO"

    # OCR service (captcha recognition is disabled when unset)
    ocr_base_url: str | None = None
    ocr_timeout: float = Field(default=30.0, gt=0, le=300)  # seconds
    ocr_min_image_size: int = Field(default=100, ge=1)  # base64 length
    ocr_max_image_size: int = Field(default=2_000_000, ge=1)  # base64 length

    # Element resolution
    resolver_max_attempts: int = Field(default=3, ge=1, le=10)
    resolver_backoff: float = Field(default=0.5, ge=0, le=10)  # seconds
    resolver_timeout: float = Field(default=10.0, gt=0, le=120)  # seconds

    # Login flow
    step_timeout: float = Field(default=10.0, gt=0, le=300)  # seconds, per step
    fill_settle: float = Field(default=0.5, ge=0, le=10)  # seconds after each fill
    submit_settle: float = Field(default=3.0, ge=0, le=60)  # seconds after submit
    login_timeout: float = Field(default=30.0, gt=0, le=600)  # whole attempt

    # Browser
    browser_headless: bool = True
    browser_proxy: str | None = None
    browser_user_agent: str = DEFAULT_USER_AGENT
    browser_viewport_width: int = Field(default=1500, ge=800, le=3840)
    browser_viewport_height: int = Field(default=900, ge=600, le=2160)
    browser_ignore_https_errors: bool = True
    navigation_timeout: float = Field(default=30.0, gt=0, le=300)  # seconds

    # Selector cache persistence (in-memory only when unset)
    selector_store_path: str | None = None

    @property
    def captcha_enabled(self) -> bool:
        """Check if an OCR service is configured."""
        return bool(self.ocr_base_url)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience access
settings = get_settings()
