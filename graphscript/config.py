"""
Runtime configuration for the CLI and the HTTP server.

Settings are read from ``GRAPHSCRIPT_*`` environment variables and from a
``.env`` file in the working directory:

    GRAPHSCRIPT_LOG_LEVEL   logging level name          (INFO)
    GRAPHSCRIPT_LOG_FORMAT  logging format string
    GRAPHSCRIPT_STRICT      strict compilation          (false)
    GRAPHSCRIPT_OUT_DIR     CLI output directory        (compiled)
    GRAPHSCRIPT_HOST        server bind address         (0.0.0.0)
    GRAPHSCRIPT_PORT        server port                 (3001)
"""
from __future__ import annotations

import logging
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="GRAPHSCRIPT_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    log_level: str = "INFO"
    log_format: str = DEFAULT_LOG_FORMAT
    strict: bool = False
    out_dir: str = "compiled"
    host: str = "0.0.0.0"
    port: int = 3001

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.strip().upper()


def get_settings(env_file: Optional[str] = None) -> Settings:
    """Build Settings from the environment and ``.env`` (or ``env_file``)."""
    if env_file:
        return Settings(_env_file=env_file)
    return Settings()


def configure_logging(settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level, format=settings.log_format)


__all__ = ["DEFAULT_LOG_FORMAT", "Settings", "configure_logging", "get_settings"]
