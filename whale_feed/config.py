"""Configuration loader for Whale Feed."""

from dataclasses import dataclass
from pathlib import Path

import yaml


@dataclass
class ApiConfig:
    base_url: str
    websocket_url: str
    timeout_seconds: float = 30.0


@dataclass
class FeedConfig:
    profile: str = "whale"
    page_size: int = 10
    debounce_ms: int = 100
    pending_capacity: int = 50
    ping_interval: float = 25.0
    reconnect_delay: float = 5.0


@dataclass
class LoggingConfig:
    level: str
    file: str
    max_file_size_mb: int
    backup_count: int


@dataclass
class DatabaseConfig:
    path: str


@dataclass
class Config:
    api: ApiConfig
    feed: FeedConfig
    logging: LoggingConfig
    database: DatabaseConfig


def load_config(config_path: str | Path = "config.yaml") -> Config:
    """Load configuration from YAML file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f)

    return Config(
        api=ApiConfig(**raw["api"]),
        feed=FeedConfig(**(raw.get("feed") or {})),
        logging=LoggingConfig(**raw["logging"]),
        database=DatabaseConfig(**raw["database"]),
    )
