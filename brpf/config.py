"""Runtime configuration loaded from the environment or a ``.env`` file."""
from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed access to the environment values used by the application."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./brpf.db"
    """SQLAlchemy URL; PostgreSQL in production, SQLite for development."""

    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_expiration_days: int = 7
    bcrypt_rounds: int = 12

    cors_origins: List[str] = ["http://localhost:3000"]

    templates_dir: Path = Path("./uploads/templates")
    """Directory holding uploaded DOCX template versions."""

    max_template_size: int = 10 * 1024 * 1024

    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str | None = None) -> None:
    """Install the process-wide logging format once."""

    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


__all__ = ["Settings", "configure_logging", "get_settings"]
