"""
Configuration for the storefront chat assistant.

Settings are read from environment variables prefixed with ``CHATBOT_`` (or a
local ``.env`` file). The OpenAI key is also accepted under its conventional
``OPENAI_API_KEY`` name.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CHATBOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Storefront backend
    api_base_url: str = Field(
        default="http://localhost:8000/api",
        description="Base URL of the storefront REST API.",
    )
    api_token: Optional[str] = Field(
        default=None, description="Bearer token forwarded to the storefront API."
    )
    http_timeout: float = Field(default=10.0, description="HTTP timeout in seconds.")

    # Order lookup
    max_order_pages: int = Field(
        default=10, ge=1, description="Traversal bound for order code lookups."
    )
    recent_orders_limit: int = Field(
        default=3, ge=1, description="How many orders the history reply shows."
    )

    # Conversation
    history_window: int = Field(
        default=8, ge=0, description="Messages forwarded to the AI fallback."
    )
    default_remind_minutes: int = Field(
        default=30, ge=1, description="Reminder delay when none is given."
    )

    # AI fallback
    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("CHATBOT_OPENAI_API_KEY", "OPENAI_API_KEY"),
        description="When set, the AI fallback calls OpenAI directly.",
    )
    openai_model: str = Field(default="gpt-4o-mini", description="OpenAI chat model.")

    log_level: str = Field(default="INFO", description="Root logging level.")


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
