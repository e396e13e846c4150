"""
Common Utilities

Shared modules used across the engine:
- state.py - Durable file and preference storage
- settings.py - Settings dataclass and YAML loader
- exceptions.py - Custom exception classes
- logging_setup.py - Structured logging setup
"""

from .state import LocalFileStore, JsonPreferenceStore
from .settings import RemoteConfigSettings, load_settings
from .exceptions import (
    RemoteConfigError,
    TransportError,
    SchemaError,
    StorageError,
    ConfigurationError,
)
from .logging_setup import (
    setup_logging,
    get_service_logger,
)

__all__ = [
    # State
    "LocalFileStore",
    "JsonPreferenceStore",
    # Settings
    "RemoteConfigSettings",
    "load_settings",
    # Exceptions
    "RemoteConfigError",
    "TransportError",
    "SchemaError",
    "StorageError",
    "ConfigurationError",
    # Logging
    "setup_logging",
    "get_service_logger",
]
