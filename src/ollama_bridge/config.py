"""Application configuration using Pydantic settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Ollama backend
    ollama_base_url: str = Field(
        "http://localhost:11434", alias="OLLAMA_BASE_URL",
        description="Base URL of the Ollama server. Requests go to <base>/api/generate.",
    )
    ollama_timeout: float = Field(
        300.0, alias="OLLAMA_TIMEOUT",
        description="HTTP timeout in seconds for backend calls. The relay itself applies no timers.",
    )

    # Streaming relay
    relay_queue_size: int = Field(
        1, alias="RELAY_QUEUE_SIZE",
        ge=1,
        description="Capacity of the hand-off queue between the upstream reader and the event writer.",
    )
    relay_min_line_length: int = Field(
        5, alias="RELAY_MIN_LINE_LENGTH",
        ge=0,
        description="Upstream lines shorter than this are treated as noise and dropped.",
    )

    # Server
    host: str = Field(
        "0.0.0.0", alias="HOST",
        description="Host address to bind the aiohttp server to.",
    )
    port: int = Field(
        3000, alias="PORT",
        description="Port number for the aiohttp server.",
    )

    # Logging
    log_level: str = Field(
        "INFO", alias="LOG_LEVEL",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, or CRITICAL.",
    )
    log_file: str = Field(
        "", alias="LOG_FILE",
        description="Path to log file for file-based logging with rotation. Empty = console only.",
    )
    log_file_max_bytes: int = Field(
        10_485_760, alias="LOG_FILE_MAX_BYTES",
        description="Max size in bytes per log file before rotation. Default: 10 MB.",
    )
    log_file_backup_count: int = Field(
        5, alias="LOG_FILE_BACKUP_COUNT",
        description="Number of rotated backup log files to keep.",
    )


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
