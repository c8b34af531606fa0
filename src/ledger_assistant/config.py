"""Application configuration using Pydantic Settings."""

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URL = "http://localhost:8080"
DEFAULT_CHAT_PATH = "/api/v1/llm/assistant/chat.json"
DEFAULT_CHAT_STREAM_PATH = "/api/v1/llm/assistant/chat/stream.json"

# The server rejects requests with more history items than this
MAX_HISTORY_ITEMS = 20

SECRET_FILE_ENV_VARS = ("ASSISTANT_API_TOKEN",)


def _load_secret_file_env_vars() -> None:
    """Allow secrets to be sourced from *_FILE env vars (Docker secrets)."""
    for env_var in SECRET_FILE_ENV_VARS:
        file_var = f"{env_var}_FILE"
        file_path = os.getenv(file_var)
        if not file_path:
            continue
        try:
            value = Path(file_path).read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise RuntimeError(f"Failed to read {file_var} at {file_path}") from exc
        if not value:
            raise ValueError(f"{file_var} is empty")
        os.environ[env_var] = value


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ----- Application -----
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = False

    # ----- Assistant -----
    assistant_enabled: bool = True
    assistant_streaming: bool = True
    assistant_history_window: int = Field(default=12, ge=1, le=MAX_HISTORY_ITEMS)
    assistant_max_message_length: int = Field(default=2048, ge=1)

    # ----- Remote API -----
    assistant_base_url: str = DEFAULT_BASE_URL
    assistant_api_token: str = ""
    assistant_chat_path: str = DEFAULT_CHAT_PATH
    assistant_chat_stream_path: str = DEFAULT_CHAT_STREAM_PATH
    assistant_request_timeout: float = Field(default=60.0, gt=0)
    assistant_connect_retries: int = Field(default=3, ge=1)
    # Sent as X-Timezone-Name so the server can bucket transactions by local day
    assistant_timezone: str | None = None

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    def endpoint_url(self, path: str) -> str:
        """Join the base URL and an endpoint path with exactly one slash."""
        return self.assistant_base_url.rstrip("/") + "/" + path.lstrip("/")

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Ensure secure settings in production environment."""
        if self.is_production:
            if self.app_debug:
                raise ValueError("APP_DEBUG must be false in production!")
            if not self.assistant_base_url.startswith("https://"):
                raise ValueError("ASSISTANT_BASE_URL must use https in production!")
            if not self.assistant_api_token:
                raise ValueError("ASSISTANT_API_TOKEN must be set in production!")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    _load_secret_file_env_vars()
    return Settings()
