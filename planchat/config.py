"""
Configuration for the planchat backend.

Two layers:
- Config: Flask application settings (secret key, CORS)
- ContentSettings: tunables for the content normalization pipeline and the
  live transcript reconciler (pydantic-settings, read from env / .env)
"""

import os
from typing import List

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_UNWRAP_FIELD_PRIORITY = ["response", "content", "markdown", "message", "text", "data"]
DEFAULT_UNWRAP_MAX_DEPTH = 3
DEFAULT_DEDUP_WINDOW_SECONDS = 5.0
DEFAULT_CITATION_EXCERPT_LENGTH = 200


class Config:
    """Base Flask configuration class"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'planchat-dev-secret'

    # CORS settings
    CORS_ORIGINS = [
        'http://localhost:3000',
        'http://localhost:5173',
        'http://localhost:8080',
    ]


class ContentSettings(BaseSettings):
    """Content pipeline and transcript configuration"""

    model_config = SettingsConfigDict(
        env_prefix="PLANCHAT_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Recursive unwrapper: field names tried in order, and the nesting cap
    unwrap_field_priority: List[str] = Field(default_factory=lambda: list(DEFAULT_UNWRAP_FIELD_PRIORITY))
    unwrap_max_depth: int = DEFAULT_UNWRAP_MAX_DEPTH

    # Near-duplicate guard window for the live transcript
    dedup_window_seconds: float = DEFAULT_DEDUP_WINDOW_SECONDS

    citation_excerpt_length: int = DEFAULT_CITATION_EXCERPT_LENGTH

    # Report storage
    reports_bucket: str = "reports"
    report_fetch_timeout_seconds: float = 30.0

    # Supabase
    supabase_url: str = Field(default="", validation_alias=AliasChoices("PLANCHAT_SUPABASE_URL", "SUPABASE_URL"))
    supabase_service_key: str = Field(
        default="", validation_alias=AliasChoices("PLANCHAT_SUPABASE_SERVICE_KEY", "SUPABASE_SERVICE_KEY")
    )
    supabase_anon_key: str = Field(default="", validation_alias=AliasChoices("PLANCHAT_SUPABASE_ANON_KEY", "SUPABASE_ANON_KEY"))

    @field_validator("unwrap_max_depth")
    @classmethod
    def _check_depth(cls, value: int) -> int:
        if value < 0:
            raise ValueError("unwrap_max_depth must be >= 0")
        return value

    @field_validator("dedup_window_seconds")
    @classmethod
    def _check_window(cls, value: float) -> float:
        if value < 0:
            raise ValueError("dedup_window_seconds must be >= 0")
        return value


settings = ContentSettings()
