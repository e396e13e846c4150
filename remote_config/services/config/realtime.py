"""
Realtime Config Updates

Applies upsert/delete deltas delivered on the collection's realtime channel
to the active snapshot and the persisted snapshot.

Deletes are always applied. Upserts go through the caller's callback and
are applied (in memory and on disk) only when it returns True.
"""

import asyncio
from typing import Callable

from remote_config.common.exceptions import StorageError, TransportError
from remote_config.common.logging_setup import get_service_logger

from .cache import ConfigCache
from .store import SnapshotStore
from .types import RealtimeEvent, RealtimeTransport, to_text

logger = get_service_logger("config.realtime")

ConfigUpdateCallback = Callable[[str, str], bool]


def channel_for(database_id: str, collection_id: str) -> str:
    """Realtime channel carrying document events of one collection"""
    return f"databases.{database_id}.collections.{collection_id}.documents"


class ConfigUpdateReconciler:
    """
    Reconciles realtime deltas into the shared snapshot.

    ``lock`` is the engine-wide critical section shared with fetch
    activation; every read-modify-persist of the snapshot happens under it.
    """

    def __init__(
        self,
        store: SnapshotStore,
        cache: ConfigCache,
        lock: asyncio.Lock,
        key_attribute: str,
        value_attribute: str,
        callback: ConfigUpdateCallback,
    ):
        self.store = store
        self.cache = cache
        self.lock = lock
        self.key_attribute = key_attribute
        self.value_attribute = value_attribute
        self.callback = callback

    async def handle_event(self, event: RealtimeEvent) -> bool:
        """
        Apply one realtime event.

        Returns:
            True if the active snapshot changed
        """
        if event.descriptor is None:
            logger.warning("No events received in the realtime update")
            return False

        payload = event.payload or {}
        raw_key = payload.get(self.key_attribute)
        raw_value = payload.get(self.value_attribute)
        if raw_key is None or raw_value is None:
            logger.warning(
                "No payload or invalid payload received in the realtime update",
                extra={"event": event.descriptor},
            )
            return False

        key = to_text(raw_key)
        value = to_text(raw_value)

        if event.is_delete:
            return await self._apply_delete(key)

        if not self._accepts(key, value):
            logger.debug(f"Update for `{key}` rejected by callback", extra={"key": key})
            return False

        return await self._apply_upsert(key, value)

    def _accepts(self, key: str, value: str) -> bool:
        try:
            return bool(self.callback(key, value))
        except Exception as e:
            logger.error(f"Config update callback failed for `{key}`: {e}", exc_info=True)
            return False

    async def _apply_delete(self, key: str) -> bool:
        async with self.lock:
            snapshot = self.store.snapshot
            if key not in snapshot:
                logger.debug(f"Delete for unknown key `{key}` ignored", extra={"key": key})
                return False

            del snapshot[key]
            self.store.replace(snapshot)
            await self._persist(snapshot)

        logger.info(f"Removed `{key}` from configs", extra={"key": key})
        return True

    async def _apply_upsert(self, key: str, value: str) -> bool:
        async with self.lock:
            snapshot = self.store.snapshot
            snapshot[key] = value
            self.store.replace(snapshot)
            await self._persist(snapshot)

        logger.info(f"Updated `{key}` in configs", extra={"key": key})
        return True

    async def _persist(self, snapshot: dict[str, str]) -> None:
        try:
            await self.cache.save_async(snapshot)
        except StorageError as e:
            logger.error(f"Failed to persist realtime update: {e}")

    async def run(self, transport: RealtimeTransport, channel: str) -> None:
        """Consume ``channel`` until the stream ends or the task is cancelled"""
        log = logger.bind(channel=channel)
        try:
            async for event in transport.subscribe([channel]):
                try:
                    await self.handle_event(event)
                except Exception as e:
                    log.error(f"Error handling realtime event: {e}", exc_info=True)
        except TransportError as e:
            log.error(f"Realtime subscription ended: {e}")
            return
        except Exception as e:
            log.error(f"Realtime subscription failed: {e}", exc_info=True)
            return

        log.info("Realtime subscription stream finished")


class ConfigSubscription:
    """Handle for a running realtime subscription. Call ``close()`` when done."""

    def __init__(self, task: asyncio.Task, channel: str):
        self._task = task
        self.channel = channel

    @property
    def closed(self) -> bool:
        return self._task.done()

    async def wait(self) -> None:
        """Wait until the event stream ends on its own"""
        await self._task

    async def close(self) -> None:
        """Stop the subscription and wait for the consumer task to finish"""
        if not self._task.done():
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        logger.debug("Realtime subscription closed", extra={"channel": self.channel})
