from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SEOGEN_", env_file=".env", extra="ignore", populate_by_name=True
    )

    environment: str = "local"
    log_level: str = "INFO"
    locale: str = "en"

    # Provider keys are read without the prefix; they are only a fallback for
    # requests that select a model but carry no key of their own.
    openai_api_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("OPENAI_API_KEY", "SEOGEN_OPENAI_API_KEY")
    )
    anthropic_api_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ANTHROPIC_API_KEY", "SEOGEN_ANTHROPIC_API_KEY")
    )
    openai_model: str = "gpt-4o-mini"
    claude_model: str = "claude-3-5-sonnet-20241022"

    fetch_timeout: float = Field(default=15.0, gt=0)
    max_redirects: int = Field(default=10, ge=0)
    min_content_length: int = Field(default=100, ge=0)
    rate_limit_delay: float = Field(default=0.5, ge=0)
    provider_timeout: float = Field(default=60.0, gt=0)

    store_path: str = "seo_pages.json"

    @field_validator("locale")
    @classmethod
    def _known_locale(cls, value: str) -> str:
        value = value.strip().lower()
        return value if value in {"en", "ko"} else "en"

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
