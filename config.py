from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Application configuration using Pydantic BaseSettings.

    Loads configuration from environment variables and .env file (if present).
    """
    # Database
    database_url: Optional[str] = None
    database_name: Optional[str] = None

    # Stripe
    stripe_secret_key: Optional[str] = None
    webhook_endpoint_secret: Optional[str] = None
    currency: str = "inr"
    allowed_countries: List[str] = ["GB", "US", "CA"]

    # Auth
    secret_key: str = "change-me"
    token_ttl_hours: int = 24

    # Application
    app_env: str = "local"
    log_level: str = "DEBUG"
    frontend_url: str = "http://localhost:5173"
    cors_origins: List[str] = ["*"]
    port: int = 8000

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the AppConfig instance (singleton pattern)."""
    global _config
    if _config is None:
        _config = AppConfig()
    return _config


def set_config_for_test(**kwargs):
    """For testing only: override the AppConfig instance with new values."""
    global _config
    _config = AppConfig(**kwargs)
