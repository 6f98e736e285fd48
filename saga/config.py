"""Application settings loaded from environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strongly typed server configuration."""

    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    chat_model: str = Field(default="gpt-4o-mini", alias="CHAT_MODEL")
    chat_max_tokens: int = Field(default=400, alias="CHAT_MAX_TOKENS")
    chat_temperature: float = Field(default=0.7, alias="CHAT_TEMPERATURE")
    chat_timeout: float = Field(default=30.0, alias="CHAT_TIMEOUT", description="Seconds")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: Literal["debug", "info", "warning", "error", "critical"] = Field(
        default="info", alias="LOG_LEVEL"
    )
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=5001, alias="PORT")
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @property
    def provider_configured(self) -> bool:
        return bool(self.openai_api_key)


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of settings."""

    return Settings()
