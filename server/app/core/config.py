"""Application configuration loaded from environment variables."""
from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central place for strongly typed application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = Field(default="Phlag")
    environment: Literal["development", "staging", "production"] = Field(default="development")
    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    database_url: str = Field(validation_alias="DATABASE_URL")

    webhooks_enabled: bool = Field(default=True)
    webhooks_timeout: float = Field(default=5, gt=0, description="Per-attempt timeout in seconds")
    webhooks_max_retries: int = Field(default=1, ge=0, description="Additional attempts after the first")
    webhooks_retry_delay: float = Field(default=0.1, ge=0, description="Pause between attempts in seconds")
    webhooks_max_response_body: int = Field(default=1000, gt=0)

    @model_validator(mode="after")
    def convert_database_url(self) -> "Settings":
        """Convert postgresql+psycopg:// (psycopg3) to postgresql:// (psycopg2)."""
        if self.database_url.startswith("postgresql+psycopg://"):
            self.database_url = self.database_url.replace("postgresql+psycopg://", "postgresql://")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance so downstream code can import directly."""

    return Settings()
