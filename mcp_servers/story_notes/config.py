"""Story Notes configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings

EMPTY_PLACEHOLDER = "<div>Comece a escrever suas anotações aqui...</div>"
ROOT_LABEL = "Anotações"


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "STORY_NOTES_",
    }

    # Storage (in-memory when unset)
    storage_path: Path | None = None

    # Content
    empty_placeholder: str = EMPTY_PLACEHOLDER
    root_label: str = ROOT_LABEL

    # MCP server
    host: str = "0.0.0.0"
    port: int = 8001
    log_level: str = "INFO"


settings = Settings()
