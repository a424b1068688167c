"""Configuration module using Pydantic Settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Logging
    log_level: str = "INFO"

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Token accounting
    tokenizer_encoding: str = "cl100k_base"

    # Streaming
    sse_heartbeat_interval: float = 15.0  # Seconds of silence before a keep-alive (0 = off)
    request_id_header: str = "X-Request-Id"
    mock_token_delay: float = 0.02  # Delay between mock completion words


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience function for quick access
settings = get_settings()
