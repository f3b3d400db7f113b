"""Application configuration from environment variables."""

import logging
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


def load_environment(dotenv_path: Optional[str] = None) -> bool:
    """Load a .env file into os.environ; variables already set are kept.

    Runs on import, before the first Settings read, so the database engine
    and gateway credentials see the same values as the rest of the process.
    """
    return load_dotenv(dotenv_path or find_dotenv(usecwd=True))


# Load environment variables
load_environment()


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Pydantic loads values from:
    1. OS environment variables (at instantiation time)
    2. .env file in the working directory
    """

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./society_portal.db",
        description="SQLAlchemy connection string (sync form, rewritten for async driver)",
    )
    database_echo: bool = Field(default=False, description="Log SQL queries")

    # Payment gateway
    razorpay_key_id: str = Field(default="", description="Razorpay API key id")
    razorpay_key_secret: str = Field(
        default="", description="Razorpay API secret, also the callback signing key"
    )
    currency: str = Field(default="INR", description="Currency for gateway orders")

    # Locale
    locale: str = Field(default="en_IN", description="Babel locale for amounts and dates")
    timezone: str = Field(
        default="Asia/Kolkata",
        description="Zone whose calendar decides billing months (empty: system zone)",
    )

    # Sessions
    session_secret: str = Field(
        default="dev-session-secret-change-me", description="Cookie signing secret"
    )
    session_max_age_seconds: int = Field(default=24 * 60 * 60, description="Session lifetime")
    session_https_only: bool = Field(default=False, description="Mark session cookie Secure")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/server.log", description="Server log file path")

    # API
    api_title: str = Field(default="Society Portal", description="API title")
    api_version: str = Field(default="0.1.0", description="API version")

    def validate_gateway(self) -> None:
        """Validate payment gateway credentials are present."""
        if not self.razorpay_key_id or not self.razorpay_key_secret:
            raise ValueError(
                "RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET environment variables are required"
            )


_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the settings instance.

    Lazy so that tests and the CLI can set environment variables before
    the first read.
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance


def reset_settings() -> None:
    """Drop the cached settings instance (next get_settings() re-reads env)."""
    global _settings_instance
    _settings_instance = None


__all__ = ["Settings", "get_settings", "load_environment", "reset_settings"]
