"""
Application configuration using Pydantic Settings.

Centralizes all environment variables and app settings.
Handlers receive the settings through Depends(get_settings) so tests can
override them on the FastAPI app.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    All sensitive/configurable values should live here.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars not defined here
    )

    # Application
    app_name: str = "Callisto API"
    debug: bool = False

    # MongoDB - Motor (async driver) connection string
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "callisto"

    # Token signing - HS256 shared secret
    jwt_secret: Optional[str] = None
    jwt_expire_days: int = 7

    # Email verification
    otp_ttl_minutes: int = 10

    # SMTP - OTP emails are only sent when user and password are both set
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_pass: Optional[str] = None
    smtp_from: Optional[str] = None

    # LLM - Groq (get key at https://console.groq.com)
    groq_api_key: Optional[str] = None
    # Tried in order until one answers; set as a JSON list in the environment
    roadmap_models: List[str] = [
        "llama-3.3-70b-versatile",
        "llama-3.1-8b-instant",
        "gemma2-9b-it",
    ]

    @field_validator("jwt_secret", "groq_api_key", "smtp_user", "smtp_pass", mode="before")
    @classmethod
    def strip_secret(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not isinstance(v, str):
            return v
        return v.strip() or None

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_pass)


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings instance.
    Using lru_cache avoids re-reading .env on every request.
    """
    return Settings()
