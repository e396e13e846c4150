"""
Remote Config Service - Resolution Orchestrator

Responsible for:
- Deciding between the local cache and a network fetch (TTL gate)
- Activating fetched configs and persisting them for offline use
- Falling back to the cached snapshot or defaults on empty/failed fetches
- Applying realtime updates under the same critical section as fetches
"""

import asyncio
from pathlib import Path
from typing import Any, Callable, Mapping

from remote_config.common.exceptions import ConfigurationError, StorageError
from remote_config.common.logging_setup import get_service_logger
from remote_config.common.settings import (
    DEFAULT_CACHE_LIMIT_HOURS,
    DEFAULT_COLLECTION_ID,
    DEFAULT_DATABASE_ID,
    DEFAULT_KEY_ATTRIBUTE,
    DEFAULT_VALUE_ATTRIBUTE,
    RemoteConfigSettings,
    default_data_dir,
)

from .cache import CacheGate, ConfigCache, now_ms
from .realtime import ConfigSubscription, ConfigUpdateCallback, ConfigUpdateReconciler, channel_for
from .store import SnapshotStore
from .sync import ConfigSync
from .transport import HttpDocumentTransport, WebSocketRealtimeTransport
from .types import DocumentTransport, FetchOutcome, FileStore, PreferenceStore, RealtimeTransport

logger = get_service_logger("config.service")


class RemoteConfigService:
    """
    Remote config engine.

    Resolves configs from (in priority order) the active snapshot - fetched
    from the network, loaded from cache, or patched in realtime - and the
    caller defaults.

    One instance owns the active snapshot, defaults, freshness mark and the
    lock serializing every snapshot mutation. Construct it explicitly (or via
    ``from_settings``) and share the instance.
    """

    def __init__(
        self,
        transport: DocumentTransport | None = None,
        realtime: RealtimeTransport | None = None,
        data_dir: Path | None = None,
        defaults: Mapping[str, Any] | None = None,
        file_store: FileStore | None = None,
        preferences: PreferenceStore | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        self._transport = transport
        self._realtime = realtime

        # Collection scope and attribute mapping
        self.database_id = DEFAULT_DATABASE_ID
        self.collection_id = DEFAULT_COLLECTION_ID
        self.key_attribute = DEFAULT_KEY_ATTRIBUTE
        self.value_attribute = DEFAULT_VALUE_ATTRIBUTE
        self.cache_limit_hours = DEFAULT_CACHE_LIMIT_HOURS

        self.store = SnapshotStore(defaults)
        self.cache = ConfigCache(
            data_dir or default_data_dir(),
            file_store=file_store,
            preferences=preferences,
            clock=clock,
        )
        self._clock = clock

        # Guards active snapshot replacement + disk writes (fetch and realtime)
        self._lock = asyncio.Lock()
        # At most one remote fetch per instance
        self._fetch_task: asyncio.Task | None = None
        self._subscriptions: list[ConfigSubscription] = []
        self._owned_transports: list[Any] = []

    @classmethod
    def from_settings(cls, settings: RemoteConfigSettings) -> "RemoteConfigService":
        """
        Build a service with the default HTTP/websocket transports.

        Raises:
            ConfigurationError: if the settings are invalid or lack an endpoint
        """
        settings.validate()
        if not settings.endpoint or not settings.project_id:
            raise ConfigurationError("endpoint and project_id are required")

        transport = HttpDocumentTransport(
            settings.endpoint,
            settings.project_id,
            api_key=settings.api_key,
            timeout=settings.request_timeout_s,
        )
        realtime = WebSocketRealtimeTransport(settings.endpoint, settings.project_id)

        service = cls(
            transport=transport,
            realtime=realtime,
            data_dir=settings.data_dir,
            defaults=settings.defaults,
        )
        service.set_database_and_collection_ids(settings.database_id, settings.collection_id)
        service.set_key_and_value_attribute_ids(settings.key_attribute, settings.value_attribute)
        service.set_cache_limit(settings.cache_limit_hours)
        service._owned_transports = [transport, realtime]
        return service

    # -- Configuration surface ------------------------------------------------

    def set_transport(self, transport: DocumentTransport) -> None:
        """Set the document query transport used for fetches"""
        self._transport = transport

    def set_defaults(self, defaults: Mapping[str, Any]) -> None:
        """Set values used when a key is absent from the active configs"""
        self.store.set_defaults(defaults)

    def set_database_and_collection_ids(self, database_id: str, collection_id: str) -> None:
        self.database_id = database_id
        self.collection_id = collection_id

    def set_key_and_value_attribute_ids(self, key_attribute: str, value_attribute: str) -> None:
        self.key_attribute = key_attribute
        self.value_attribute = value_attribute

    def set_cache_limit(self, hours: int) -> None:
        """Hours a fetched snapshot stays valid. ``0`` always fetches."""
        if hours < 0:
            raise ConfigurationError(f"cache limit must be >= 0, got {hours}")
        self.cache_limit_hours = hours

    # -- Reads ------------------------------------------------------------

    def get_current_configs(self) -> dict[str, str]:
        """Copy of the active configs (fetched, cached, patched or defaults)"""
        return self.store.snapshot

    def get_string(self, key: str) -> str:
        return self.store.get_string(key)

    def get_int(self, key: str) -> int:
        return self.store.get_int(key)

    def get_bool(self, key: str) -> bool:
        return self.store.get_bool(key)

    # -- Resolution -------------------------------------------------------

    async def fetch_and_activate(self) -> FetchOutcome:
        """
        Resolve configs and activate them.

        Concurrent callers share the in-flight resolution.

        Returns:
            FetchOutcome tagging where the active configs came from

        Raises:
            ConfigurationError: if no document transport has been set
        """
        if self._transport is None:
            raise ConfigurationError("Document transport is not set; call set_transport() first")

        if self._fetch_task is None or self._fetch_task.done():
            self._fetch_task = asyncio.create_task(self._resolve())
        else:
            logger.debug("Joining in-flight config fetch")

        return await asyncio.shield(self._fetch_task)

    async def _resolve(self) -> FetchOutcome:
        gate = CacheGate(self.cache, self.cache_limit_hours, clock=self._clock)

        if await gate.is_valid_async():
            async with self._lock:
                saved = await self.cache.load_async()
                if saved:
                    self.store.replace(saved)
                    logger.info(f"Loaded config from cache ({len(saved)} keys)")
                    return FetchOutcome.cache()

        sync = ConfigSync(
            self._transport,
            self.database_id,
            self.collection_id,
            self.key_attribute,
            self.value_attribute,
        )

        try:
            fetched = await sync.fetch_all()
        except Exception as e:
            logger.error(f"Error fetching config: {e}", extra={"error_type": type(e).__name__})
            async with self._lock:
                await self._activate_fallback()
            return FetchOutcome.failure(e)

        async with self._lock:
            if not fetched:
                logger.info("No documents exist for remote config")
                return await self._activate_fallback()

            self.store.replace(fetched)
            try:
                await self.cache.save_async(fetched)
            except StorageError as e:
                # Fetched configs stay active for this session; freshness mark untouched
                logger.error(f"Failed to save config to cache: {e}")

        logger.info(
            f"Config activated from network ({len(fetched)} keys)",
            extra={"key_count": len(fetched)},
        )
        return FetchOutcome.network()

    async def _activate_fallback(self) -> FetchOutcome:
        """Activate the persisted snapshot, else the defaults. Caller holds the lock."""
        saved = await self.cache.load_async()
        if saved:
            self.store.replace(saved)
            logger.info(f"Falling back to cached config ({len(saved)} keys)")
            return FetchOutcome.cache()

        self.store.activate_defaults()
        logger.info("Falling back to default config")
        return FetchOutcome.defaults()

    # -- Realtime ---------------------------------------------------------

    def add_on_config_update_listener(
        self,
        callback: ConfigUpdateCallback,
        realtime: RealtimeTransport | None = None,
    ) -> ConfigSubscription:
        """
        Subscribe to realtime updates of the config collection.

        ``callback(key, value)`` decides whether an update is applied: return
        True to activate and persist it, False to drop it. Deletes are always
        applied and never reach the callback.

        Must be called from a running event loop.

        Returns:
            Subscription handle; ``await subscription.close()`` when done

        Raises:
            ConfigurationError: if no realtime transport is available
        """
        transport = realtime or self._realtime
        if transport is None:
            raise ConfigurationError("Realtime transport is not set")

        reconciler = ConfigUpdateReconciler(
            self.store,
            self.cache,
            self._lock,
            self.key_attribute,
            self.value_attribute,
            callback,
        )
        channel = channel_for(self.database_id, self.collection_id)
        task = asyncio.create_task(reconciler.run(transport, channel))
        subscription = ConfigSubscription(task, channel)
        self._subscriptions.append(subscription)

        logger.info(f"Subscribed to {channel}", extra={"channel": channel})
        return subscription

    # -- Lifecycle --------------------------------------------------------

    async def close(self) -> None:
        """Close subscriptions and any transports created by ``from_settings``"""
        for subscription in self._subscriptions:
            await subscription.close()
        self._subscriptions.clear()

        for transport in self._owned_transports:
            await transport.close()
        self._owned_transports.clear()
