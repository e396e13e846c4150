"""
Remote Config

Client-side remote configuration: fetch a key/value collection from the
backend, cache it on disk with a TTL, fall back to defaults, and keep it
current through realtime updates.
"""

from .common.exceptions import (
    ConfigurationError,
    RemoteConfigError,
    SchemaError,
    StorageError,
    TransportError,
)
from .common.settings import RemoteConfigSettings, load_settings
from .services.config import (
    FetchOutcome,
    RealtimeEvent,
    RemoteConfigService,
    SourceType,
)

__version__ = "0.1.0"

__all__ = [
    "RemoteConfigService",
    "RemoteConfigSettings",
    "load_settings",
    "FetchOutcome",
    "SourceType",
    "RealtimeEvent",
    "RemoteConfigError",
    "TransportError",
    "SchemaError",
    "StorageError",
    "ConfigurationError",
]
