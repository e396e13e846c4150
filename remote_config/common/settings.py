"""
Engine Settings

Type-safe settings for the remote config engine, loaded from a YAML file
with environment variable fallbacks for connection credentials.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError
from .logging_setup import get_service_logger

logger = get_service_logger("settings")

DEFAULT_DATABASE_ID = "remote_config"
DEFAULT_COLLECTION_ID = "release"
DEFAULT_KEY_ATTRIBUTE = "key"
DEFAULT_VALUE_ATTRIBUTE = "value"
DEFAULT_CACHE_LIMIT_HOURS = 24


def default_data_dir() -> Path:
    """Per-user data directory for the persisted snapshot"""
    return Path(os.environ.get("REMOTE_CONFIG_DATA_DIR", Path.home() / ".local" / "share" / "remote_config"))


@dataclass
class RemoteConfigSettings:
    """Connection, collection and cache settings"""
    # Backend connection
    endpoint: str = ""
    project_id: str = ""
    api_key: str = ""
    request_timeout_s: float = 30.0

    # Collection scope and attribute mapping
    database_id: str = DEFAULT_DATABASE_ID
    collection_id: str = DEFAULT_COLLECTION_ID
    key_attribute: str = DEFAULT_KEY_ATTRIBUTE
    value_attribute: str = DEFAULT_VALUE_ATTRIBUTE

    # Cache
    cache_limit_hours: int = DEFAULT_CACHE_LIMIT_HOURS  # 0 = always fetch
    data_dir: Path = field(default_factory=default_data_dir)

    # Fallback values
    defaults: dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        """
        Check settings that would otherwise fail late.

        Raises:
            ConfigurationError: on a negative cache limit or blank identifiers
        """
        if self.cache_limit_hours < 0:
            raise ConfigurationError(f"cache_limit_hours must be >= 0, got {self.cache_limit_hours}")

        for name in ("database_id", "collection_id", "key_attribute", "value_attribute"):
            if not getattr(self, name):
                raise ConfigurationError(f"{name} must not be empty")


def _find_settings_path() -> Path | None:
    """Find settings file"""
    env_path = os.environ.get("REMOTE_CONFIG_FILE")
    if env_path:
        return Path(env_path)

    possible_paths = [
        Path.cwd() / "remote_config.yaml",
        Path.home() / ".config" / "remote_config" / "config.yaml",
    ]

    for path in possible_paths:
        if path.exists():
            return path

    return None


def _read_yaml(path: Path) -> dict:
    """Load settings mapping from YAML file"""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning(f"Settings file not found: {path}")
        return {}
    except yaml.YAMLError as e:
        logger.error(f"Error parsing settings: {e}")
        return {}

    if not isinstance(data, dict):
        logger.error(f"Settings file must contain a mapping: {path}")
        return {}
    return data


def load_settings(path: str | Path | None = None) -> RemoteConfigSettings:
    """
    Load settings from YAML, falling back to environment variables.

    Expected layout::

        backend:
          endpoint: https://cloud.appwrite.io/v1
          project_id: my-project
          api_key: ...
        collection:
          database_id: remote_config
          collection_id: release
          key_attribute: key
          value_attribute: value
        cache:
          limit_hours: 24
          data_dir: /var/lib/my-app
        defaults:
          cdnUrl: https://old.cdn/

    Args:
        path: Explicit settings file; otherwise discovered

    Returns:
        Validated settings
    """
    settings_path = Path(path) if path else _find_settings_path()
    data = _read_yaml(settings_path) if settings_path else {}

    backend = data.get("backend") or {}
    collection = data.get("collection") or {}
    cache = data.get("cache") or {}

    settings = RemoteConfigSettings(
        endpoint=backend.get("endpoint") or os.environ.get("REMOTE_CONFIG_ENDPOINT", ""),
        project_id=backend.get("project_id") or os.environ.get("REMOTE_CONFIG_PROJECT_ID", ""),
        api_key=backend.get("api_key") or os.environ.get("REMOTE_CONFIG_API_KEY", ""),
        request_timeout_s=float(backend.get("timeout_s", 30.0)),
        database_id=collection.get("database_id", DEFAULT_DATABASE_ID),
        collection_id=collection.get("collection_id", DEFAULT_COLLECTION_ID),
        key_attribute=collection.get("key_attribute", DEFAULT_KEY_ATTRIBUTE),
        value_attribute=collection.get("value_attribute", DEFAULT_VALUE_ATTRIBUTE),
        cache_limit_hours=int(cache.get("limit_hours", DEFAULT_CACHE_LIMIT_HOURS)),
        data_dir=Path(cache["data_dir"]) if cache.get("data_dir") else default_data_dir(),
        defaults=dict(data.get("defaults") or {}),
    )
    settings.validate()

    logger.debug(
        f"Settings loaded from {settings_path or 'environment'}",
        extra={"database_id": settings.database_id, "collection_id": settings.collection_id},
    )
    return settings
