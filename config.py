# config.py
"""Configuration settings for the storyloom generation core.
Uses Pydantic BaseSettings for automatic environment variable loading.
"""

from __future__ import annotations

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class StoryloomSettings(BaseSettings):
    """Full configuration for storyloom."""

    # API and Model Configuration
    OPENAI_API_BASE: str = "https://api.deepseek.com/v1"
    OPENAI_API_KEY: str = ""
    TEXT_MODEL: str = "deepseek-chat"
    TEXT_PROVIDER: str = "deepseek"
    HTTPX_TIMEOUT: float = 600.0

    # Temperature Settings
    TEMPERATURE_OUTLINE: float = 0.8
    TEMPERATURE_CHAPTER: float = 0.7
    TEMPERATURE_REVISION: float = 0.5
    TEMPERATURE_TWEET: float = 0.8
    TEMPERATURE_CHARACTER: float = 0.7
    TEMPERATURE_PORTRAIT: float = 0.6

    # Token Budgets
    OUTLINE_MAX_TOKENS: int = 4000
    OUTLINE_CONTINUATION_MAX_TOKENS: int = 8000
    CHAPTER_STREAM_MAX_TOKENS: int = 4000
    CHAPTER_MAX_TOKENS: int = 6000
    PROLOGUE_MAX_TOKENS: int = 2000
    REVISION_MAX_TOKENS: int = 6000
    TWEET_MAX_TOKENS: int = 1000
    CHARACTER_MAX_TOKENS: int = 500
    PORTRAIT_MAX_TOKENS: int = 300

    # Outline Continuation
    MAX_CONTINUATION_ROUNDS: int = 5
    CONTINUATION_TAIL_CHARS: int = 3000
    CONTINUATION_DELAY_SECONDS: float = 0.5

    # Chapter Generation
    DEFAULT_TARGET_WORDS: int = 2500
    DEFAULT_REVISION_GOALS: str = "润色并保持原意，使表达更自然流畅"

    # Logging & UI
    LOG_LEVEL_STR: str = Field("INFO", alias="STORYLOOM_LOG_LEVEL")
    LOG_FORMAT: str = (
        "%(asctime)s - %(levelname)s - [%(name)s:%(funcName)s:%(lineno)d] - %(message)s"
    )
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    LOG_DIR: str = "storyloom_output"
    LOG_FILE: str | None = "storyloom_run.log"
    ENABLE_RICH_PROGRESS: bool = True

    @model_validator(mode="after")
    def check_budgets(self) -> StoryloomSettings:
        budgets = {
            "OUTLINE_MAX_TOKENS": self.OUTLINE_MAX_TOKENS,
            "OUTLINE_CONTINUATION_MAX_TOKENS": self.OUTLINE_CONTINUATION_MAX_TOKENS,
            "CHAPTER_STREAM_MAX_TOKENS": self.CHAPTER_STREAM_MAX_TOKENS,
            "CHAPTER_MAX_TOKENS": self.CHAPTER_MAX_TOKENS,
            "CONTINUATION_TAIL_CHARS": self.CONTINUATION_TAIL_CHARS,
        }
        for name, value in budgets.items():
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
        if self.MAX_CONTINUATION_ROUNDS < 0:
            raise ValueError("MAX_CONTINUATION_ROUNDS cannot be negative")
        if self.CONTINUATION_DELAY_SECONDS < 0:
            raise ValueError("CONTINUATION_DELAY_SECONDS cannot be negative")
        return self

    model_config = SettingsConfigDict(
        env_prefix="", env_file=".env", extra="ignore", populate_by_name=True
    )


settings = StoryloomSettings()
