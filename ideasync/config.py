"""Configuration loading for ideasync."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

LOG_LEVELS = ("error", "warning", "info", "debug")


@dataclass
class RemoteConfig:
    """Connection to the hosted tables."""

    url: str = ""
    api_key: str | None = None
    access_token: str | None = None
    projects_table: str = "projects"
    ideas_table: str = "ideas"
    timeout_seconds: float = 30.0
    max_retries: int = 3


@dataclass
class SyncConfig:
    upload_concurrency: int = 4


@dataclass
class CacheConfig:
    db_path: str = "~/.ideasync/cache.db"


@dataclass
class LoggingConfig:
    level: str = "info"
    json: bool = False


@dataclass
class Config:
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _get_env(key: str, default: Any = None) -> Any:
    """Get environment variable with IDEASYNC_ prefix."""
    return os.environ.get(f"IDEASYNC_{key}", default)


def _to_int(name: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def _to_float(name: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {value!r}") from None


def _to_level(name: str, value: Any) -> str:
    level = str(value).lower()
    if level not in LOG_LEVELS:
        raise ConfigError(f"{name} must be one of {', '.join(LOG_LEVELS)}, got {value!r}")
    return level


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    # Remote overrides
    if url := _get_env("REMOTE_URL"):
        config.remote.url = url
    if api_key := _get_env("REMOTE_API_KEY"):
        config.remote.api_key = api_key
    if access_token := _get_env("REMOTE_ACCESS_TOKEN"):
        config.remote.access_token = access_token
    if timeout := _get_env("REMOTE_TIMEOUT"):
        config.remote.timeout_seconds = _to_float("IDEASYNC_REMOTE_TIMEOUT", timeout)
    if retries := _get_env("REMOTE_MAX_RETRIES"):
        config.remote.max_retries = _to_int("IDEASYNC_REMOTE_MAX_RETRIES", retries)

    # Sync overrides
    if concurrency := _get_env("SYNC_UPLOAD_CONCURRENCY"):
        config.sync.upload_concurrency = _to_int(
            "IDEASYNC_SYNC_UPLOAD_CONCURRENCY", concurrency
        )

    # Cache overrides
    if db_path := _get_env("CACHE_DB_PATH"):
        config.cache.db_path = db_path

    # Logging overrides
    if level := _get_env("LOG_LEVEL"):
        config.logging.level = _to_level("IDEASYNC_LOG_LEVEL", level)
    if log_json := _get_env("LOG_JSON"):
        config.logging.json = log_json.lower() in ("true", "1", "yes")

    return config


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, uses default config.

    Returns:
        Loaded Config object.

    Raises:
        ConfigError: If a numeric setting cannot be parsed.
    """
    config = Config()

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

            # Parse remote config
            if "remote" in data:
                remote_data = data["remote"]
                config.remote = RemoteConfig(
                    url=remote_data.get("url", config.remote.url),
                    api_key=remote_data.get("api_key"),
                    access_token=remote_data.get("access_token"),
                    projects_table=remote_data.get(
                        "projects_table", config.remote.projects_table
                    ),
                    ideas_table=remote_data.get("ideas_table", config.remote.ideas_table),
                    timeout_seconds=_to_float(
                        "remote.timeout_seconds",
                        remote_data.get("timeout_seconds", config.remote.timeout_seconds),
                    ),
                    max_retries=_to_int(
                        "remote.max_retries",
                        remote_data.get("max_retries", config.remote.max_retries),
                    ),
                )

            # Parse sync config
            if "sync" in data:
                sync_data = data["sync"]
                config.sync = SyncConfig(
                    upload_concurrency=_to_int(
                        "sync.upload_concurrency",
                        sync_data.get("upload_concurrency", config.sync.upload_concurrency),
                    ),
                )

            # Parse cache config
            if "cache" in data:
                config.cache = CacheConfig(
                    db_path=data["cache"].get("db_path", config.cache.db_path)
                )

            # Parse logging config
            if "logging" in data:
                log_data = data["logging"]
                config.logging = LoggingConfig(
                    level=_to_level(
                        "logging.level", log_data.get("level", config.logging.level)
                    ),
                    json=bool(log_data.get("json", config.logging.json)),
                )

    # Apply environment variable overrides
    return _apply_env_overrides(config)
