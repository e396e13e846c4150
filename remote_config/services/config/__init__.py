"""
Config Service - Remote Configuration Management

Responsibilities:
- Fetch the config collection from the backend (paginated)
- Maintain local cache for offline operation (TTL gated)
- Fall back to cached or default values on empty/failed fetches
- Apply realtime updates to the active configs
"""

from .cache import CacheGate, ConfigCache
from .realtime import ConfigSubscription, ConfigUpdateReconciler
from .service import RemoteConfigService
from .store import SnapshotStore
from .sync import ConfigSync
from .transport import HttpDocumentTransport, WebSocketRealtimeTransport
from .types import FetchOutcome, RealtimeEvent, SourceType

__all__ = [
    "RemoteConfigService",
    "FetchOutcome",
    "SourceType",
    "RealtimeEvent",
    "SnapshotStore",
    "ConfigCache",
    "CacheGate",
    "ConfigSync",
    "ConfigUpdateReconciler",
    "ConfigSubscription",
    "HttpDocumentTransport",
    "WebSocketRealtimeTransport",
]
