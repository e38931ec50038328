"""Configuration loader for the Bookshelf application."""

import logging
import os
from pathlib import Path
from typing import Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class AppInfo(BaseModel):
    """Application metadata."""

    name: str = "Bookshelf"
    version: str = "1.0.0"


class StorageConfig(BaseModel):
    """Local storage configuration and backend selection."""

    backend: Literal["local", "remote"] = "local"
    sqlite_path: str = "./db/bookshelf.db"
    storage_key: str = "bookshelf_books"


class RemoteConfig(BaseModel):
    """Remote (multi-device) backend configuration."""

    database_url: str = "sqlite+aiosqlite:///./db/remote.db"
    echo: bool = False
    feed_queue_size: int = 100


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class AppConfig(BaseModel):
    """Root application configuration."""

    app: AppInfo = Field(default_factory=AppInfo)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: str | Path = "config.yaml") -> AppConfig:
    """Load configuration from YAML file and environment variables.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Fully populated AppConfig instance.
    """
    load_dotenv()

    yaml_data: dict = {}
    config_file = Path(config_path)
    if config_file.exists():
        with open(config_file) as f:
            yaml_data = yaml.safe_load(f) or {}

    config = AppConfig(**yaml_data)

    # Environment wins over the YAML file
    backend = os.getenv("BOOKSHELF_BACKEND")
    if backend:
        config.storage = StorageConfig(**{**config.storage.model_dump(), "backend": backend})
    database_url = os.getenv("BOOKSHELF_DATABASE_URL")
    if database_url:
        config.remote.database_url = database_url

    return config


def configure_logging(config: AppConfig) -> None:
    """Apply the logging section of the config to the root logger."""
    logging.basicConfig(
        level=config.logging.level.upper(),
        format=config.logging.format,
    )
