"""
Application configuration settings.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal, Self


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Exam CAT Engine"
    APP_VERSION: str = "0.1.0"
    ENV: Literal["development", "production", "test"] = "development"
    DEBUG: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"

    # CAT (Computerized Adaptive Testing) defaults.
    # Applied when an exam enables adaptive testing without its own cat_settings.
    CAT_INITIAL_ABILITY: float = Field(
        default=0.0,
        ge=-3.0,
        le=3.0,
        description="Starting ability estimate (theta) for a new attempt",
    )
    CAT_PRECISION_THRESHOLD: float = Field(
        default=0.3,
        gt=0.0,
        le=1.0,
        description="Stop once the standard error drops below this value",
    )
    CAT_MIN_QUESTIONS: int = Field(
        default=5,
        ge=1,
        description="Items administered before precision stopping is honored",
    )
    CAT_MAX_QUESTIONS: int = Field(
        default=30,
        ge=1,
        description="Hard ceiling on items administered per attempt",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env not defined in Settings
    )

    @model_validator(mode="after")
    def validate_question_limits(self) -> Self:
        """Validate that the minimum item count does not exceed the ceiling."""
        if self.CAT_MIN_QUESTIONS > self.CAT_MAX_QUESTIONS:
            raise ValueError(
                f"CAT_MIN_QUESTIONS ({self.CAT_MIN_QUESTIONS}) must not exceed "
                f"CAT_MAX_QUESTIONS ({self.CAT_MAX_QUESTIONS})"
            )
        return self


settings = Settings()
