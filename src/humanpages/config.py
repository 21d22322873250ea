"""Application configuration via pydantic-settings.

Reads from .env file or environment variables. Settings are validated
once per process and cached.

Usage:
    from humanpages.config import get_settings
    settings = get_settings()
    print(settings.api_base_url)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the Human Pages MCP server."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_env: Literal["development", "staging", "production"] = "development"
    app_log_level: str = "INFO"

    # --- Backend collaborator ---
    api_base_url: str = "http://localhost:3001"
    http_timeout_seconds: float = 15.0
    # Reads only. Writes are never retried because their side effects
    # (one-time API keys, activation codes) are not idempotent.
    read_retry_attempts: int = 3
    read_retry_max_wait_seconds: float = 4.0

    # --- MCP transport ---
    mcp_transport: Literal["stdio", "streamable-http"] = "stdio"
    http_host: str = "127.0.0.1"
    http_port: int = 3002

    # --- Webhooks ---
    webhook_timeout_seconds: float = 5.0

    # --- Reference sandbox backend ---
    sandbox_host: str = "127.0.0.1"
    sandbox_port: int = 3001

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def api_root(self) -> str:
        """Base URL without a trailing slash."""
        return self.api_base_url.rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton of the application settings."""
    return Settings()
