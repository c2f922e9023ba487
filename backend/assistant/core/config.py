"""
Application Configuration
"""
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings
from pydantic import model_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Retirement Assistant"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False

    # Session storage
    REDIS_URL: str = "redis://localhost:6379/0"
    SESSION_TTL_HOURS: int = 24

    # LLM Provider (fallback answers only)
    LLM_PROVIDER: Literal["bedrock", "ollama"] = "ollama"

    # AWS Bedrock
    AWS_REGION: str = "us-east-1"
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    BEDROCK_MODEL_ID: str = "anthropic.claude-3-sonnet-20240229-v1:0"

    # Ollama
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_MODEL: str = "llama3"

    # Fallback policy
    FALLBACK_ENABLED: bool = True
    FALLBACK_TIMEOUT_SECONDS: float = 8.0
    FALLBACK_CONTEXT_MESSAGES: int = 6
    FALLBACK_MAX_SENTENCES: int = 3
    FALLBACK_MAX_WORDS: int = 50
    FALLBACK_TOPIC_GUARD: bool = True

    # Participant account context (demo participant)
    PARTICIPANT_VESTED_BALANCE: int = 80_000
    PARTICIPANT_VESTED_PERCENT: int = 60
    PARTICIPANT_CURRENT_AGE: int = 34
    PARTICIPANT_EMPLOYMENT_ACTIVE: bool = True
    PARTICIPANT_ACCOUNT_KNOWN: bool = True
    WITHDRAWAL_AVAILABLE_MAX: int = 12_000

    # Plan loan rules
    LOAN_MAX_ABSOLUTE: int = 50_000
    LOAN_MAX_PCT_OF_VESTED: float = 0.5
    LOAN_MIN_AMOUNT: int = 1_000
    LOAN_TERM_YEARS_MIN: int = 1
    LOAN_TERM_YEARS_MAX: int = 5
    LOAN_ANNUAL_RATE: float = 0.085

    # Plan vesting rules
    VESTING_SCHEDULE_TYPE: Literal["graded", "cliff"] = "graded"

    # LangFuse Observability (optional)
    LANGFUSE_PUBLIC_KEY: str = ""
    LANGFUSE_SECRET_KEY: str = ""
    LANGFUSE_HOST: str = "https://cloud.langfuse.com"

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate critical settings for non-development environments."""
        if self.APP_ENV != "development" and self.DEBUG:
            import warnings
            warnings.warn(
                "DEBUG mode is enabled in a non-development environment. "
                "This is not recommended for production.",
                UserWarning,
            )

        # Validate AWS credentials when using Bedrock
        if self.LLM_PROVIDER == "bedrock" and self.FALLBACK_ENABLED:
            if not self.AWS_ACCESS_KEY_ID or not self.AWS_SECRET_ACCESS_KEY:
                raise ValueError(
                    "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY are required when LLM_PROVIDER is 'bedrock'. "
                    "Set these in your .env file or environment variables."
                )

        if self.LOAN_MIN_AMOUNT > self.LOAN_MAX_ABSOLUTE:
            raise ValueError("LOAN_MIN_AMOUNT cannot exceed LOAN_MAX_ABSOLUTE")
        if self.LOAN_TERM_YEARS_MIN > self.LOAN_TERM_YEARS_MAX:
            raise ValueError("LOAN_TERM_YEARS_MIN cannot exceed LOAN_TERM_YEARS_MAX")

        return self

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()


settings = get_settings()
