from typing import Literal

from pydantic import HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Use top level .env file (one level above ./backend/)
        env_file="../.env",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "Enhanced CoD Gateway"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    API_PREFIX: str = "/api"
    SENTRY_DSN: HttpUrl | None = None

    # Upstream inference provider
    FIREWORKS_API_KEY: str | None = None
    UPSTREAM_BASE_URL: str = "https://api.fireworks.ai/inference/v1"
    UPSTREAM_TIMEOUT_SECONDS: float = 120.0
    UPSTREAM_CONNECT_TIMEOUT_SECONDS: float = 10.0

    # Pin the staged (Enhanced CoD) calls to one model; request model otherwise
    COD_MODEL: str | None = None

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    @property
    def chat_completions_url(self) -> str:
        return f"{self.UPSTREAM_BASE_URL.rstrip('/')}/chat/completions"


settings = Settings()  # type: ignore


def get_settings() -> Settings:
    return settings
