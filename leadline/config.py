"""
LeadLine settings, read from the environment and .env by pydantic-settings.
Required values (database URL, Twilio credentials) fail validation at startup.
"""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings

from leadline.services.scoring import ScoringCategory, DEFAULT_CATEGORIES


class Settings(BaseSettings):
    # Application
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 3000
    log_level: str = "INFO"

    # Database
    database_url: str
    database_pool_size: int = 20
    database_max_overflow: int = 10
    store_lookup_retries: int = 2
    store_retry_delay_seconds: float = 0.2

    # OpenAI (primary)
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_max_tokens: int = 150
    openai_timeout_seconds: int = 10

    # Anthropic (fallback)
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-haiku-4-5-20251001"
    anthropic_timeout_seconds: int = 10

    # Reply generation
    reply_temperature: float = 0.7
    reply_timeout_seconds: float = 10.0
    conversation_window_size: int = 10

    # Twilio
    twilio_account_sid: str
    twilio_auth_token: str
    twilio_phone_number: str  # originating line for manual sends
    sms_max_retries: int = 2

    # Qualification scoring; override with a JSON list in SCORING_CATEGORIES
    scoring_categories: list[ScoringCategory] = Field(
        default_factory=lambda: list(DEFAULT_CATEGORIES)
    )

    # Sentry
    sentry_dsn: str = ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
