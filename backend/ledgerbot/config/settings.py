# /ledgerbot/config/settings.py

from typing import List
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App Behavior
    environment: str = "production"
    api_version: str = "v1"
    api_key: str | None = None
    max_reply_length: int = 4096

    # Conversation lifecycle (seconds)
    flow_timeout_seconds: float = 30 * 60
    categorization_cache_ttl: float = 30 * 60
    document_cache_ttl: float = 5 * 60
    sweep_interval_seconds: int = 5 * 60
    classifier_timeout: float = 15.0

    # Ledger API (YNAB-compatible)
    ledger_api_url: str = "https://api.ynab.com/v1"
    ledger_api_token: str | None = None
    ledger_timeout: float = 15.0

    # AI APIs
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-1.5-flash"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"

    # Deployment
    workers: int = 1
    rate_limit_per_minute: int = 100
    cors_allowed_origins: List[str] = Field(default_factory=list)

    # ---------------- Validators ---------------- #

    @field_validator("cors_allowed_origins", mode="before")
    @classmethod
    def parse_cors_allowed_origins(cls, v):
        """Accepts either a comma-separated string or a list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator(
        "flow_timeout_seconds",
        "categorization_cache_ttl",
        "document_cache_ttl",
        "classifier_timeout",
        "ledger_timeout",
    )
    @classmethod
    def duration_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("Timeouts and TTLs must be greater than zero")
        return v

    @field_validator("sweep_interval_seconds")
    @classmethod
    def sweep_interval_not_negative(cls, v):
        if v < 0:
            raise ValueError("SWEEP_INTERVAL_SECONDS cannot be negative (use 0 to disable)")
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
