"""Client settings loaded from environment variables."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Configuration for the conversation client."""

    api_base: str = Field(default="http://localhost:5001", alias="SAGA_API_BASE")
    state_dir: Path = Field(default=Path("~/.saga"), alias="SAGA_STATE_DIR")
    request_timeout: float = Field(
        default=60.0, alias="SAGA_REQUEST_TIMEOUT", description="Seconds"
    )
    tone: str = Field(default="friendly", alias="SAGA_TONE")
    provider: str = Field(default="openai", alias="SAGA_PROVIDER")

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")
