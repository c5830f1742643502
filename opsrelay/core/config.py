"""
Configuration management for the OpsRelay signaling server.

Handles environment-based configuration for development and production.
"""
import json
import os
from pathlib import Path
from typing import Annotated
from pydantic_settings import BaseSettings, NoDecode
from pydantic import field_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    environment: str = os.getenv("ENVIRONMENT", "development")

    # Debug - handle non-boolean values gracefully
    debug: bool = False

    @field_validator("debug", mode="before")
    @classmethod
    def parse_debug(cls, v):
        """Parse debug from environment, handling non-boolean values."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            return v.lower() in ("true", "1", "yes")
        debug_env = os.getenv("DEBUG", "false").lower()
        return debug_env in ("true", "1", "yes")

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))

    # Database (chat rooms and messages, read-only for the signaling core)
    database_path: str = os.getenv("DATABASE_PATH", str(Path.home() / ".opsrelay" / "opsrelay.db"))
    database_echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"

    # Security
    secret_key: str = os.getenv("JWT_SECRET", "change-me-in-production-use-strong-random-key")
    token_algorithm: str = os.getenv("TOKEN_ALGORITHM", "HS256")
    token_expire_hours: int = int(os.getenv("TOKEN_EXPIRE_HOURS", "24"))

    # CORS
    cors_origins: Annotated[list[str], NoDecode] = os.getenv("CORS_ORIGINS", "*").split(",")

    # WebSocket signaling
    ws_path: str = os.getenv("WS_PATH", "/api/chat/ws")
    heartbeat_interval_seconds: float = float(os.getenv("HEARTBEAT_INTERVAL_SECONDS", "30"))
    typing_timeout_seconds: float = float(os.getenv("TYPING_TIMEOUT_SECONDS", "3"))
    max_frame_size: int = int(os.getenv("MAX_FRAME_SIZE", str(64 * 1024)))
    presence_enabled: bool = os.getenv("PRESENCE_ENABLED", "true").strip().lower() in ("1", "true", "yes")

    # Roles that may join any existing room without being a participant
    room_admin_roles: Annotated[list[str], NoDecode] = [
        r.strip() for r in os.getenv("ROOM_ADMIN_ROLES", "SUPERADMIN,ADMIN").split(",") if r.strip()
    ]

    @field_validator("cors_origins", "room_admin_roles", mode="before")
    @classmethod
    def parse_list(cls, v):
        """Accept comma-separated values (or a JSON list) from the environment."""
        if isinstance(v, str):
            if v.strip().startswith("["):
                return json.loads(v)
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    class Config:
        # Load .env from project root (opsrelay/core/config.py -> parent.parent.parent)
        env_file = str(Path(__file__).resolve().parent.parent.parent / ".env")
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = Settings()


def get_database_url() -> str:
    """Get SQLite database URL."""
    db_path = Path(settings.database_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{settings.database_path}"
