"""
Settings for the per-file LLM reviewer.

Values come from ``.env`` in the working directory and constructor
arguments only. ``evaluation_version`` is stamped on every stored
evaluation next to the model name.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReviewerConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    openrouter_api_key: str = Field(default="sk-or-v1-placeholder")
    review_model: str = Field(default="openai/gpt-4o-mini")
    llm_temperature: float = Field(default=0.2)
    llm_timeout: float = Field(default=180)
    max_retries: int = Field(default=3, ge=0)
    evaluation_version: str = Field(default="v1")
    enable_logfire: bool = Field(default=False)
    logfire_token: Optional[str] = Field(default=None)

    @classmethod
    def settings_customise_sources(cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings):
        # no env_settings: process environment is ignored
        return init_settings, dotenv_settings, file_secret_settings


config = ReviewerConfig()
