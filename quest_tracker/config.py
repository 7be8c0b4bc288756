"""Quest tracker configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "QUEST_",
    }

    # Document store
    storage_backend: str = "json"  # memory | json | redis
    storage_path: Path = Path("quest_log.json")
    redis_url: str = "redis://localhost:6379"
    redis_namespace: str = "QTQuestLog"
    campaign_name: str = "Default Campaign"
    change_log_limit: int = 200

    # Acting identity
    actor_id: str = ""
    is_operator: bool = False

    # MCP server
    server_host: str = "0.0.0.0"
    server_port: int = 8001

    log_level: str = "INFO"


settings = Settings()
