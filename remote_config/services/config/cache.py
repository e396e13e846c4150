"""
Configuration Cache

Local file caching for offline operation.
Persists the last good snapshot and the time it was written.
"""

import asyncio
import json
import time
from pathlib import Path
from typing import Callable

from remote_config.common.exceptions import StorageError
from remote_config.common.logging_setup import get_service_logger
from remote_config.common.state import JsonPreferenceStore, LocalFileStore

from .types import FileStore, PreferenceStore, to_text

logger = get_service_logger("config.cache")

CACHE_DIR_NAME = "remoteConfigs"
CACHE_FILE_NAME = "rc_network.json"
PREFERENCES_FILE_NAME = "preferences.json"
LAST_FETCHED_TIME_KEY = "remoteConfigLastFetchTime"

MS_PER_HOUR = 3600 * 1000


def now_ms() -> int:
    """Current wall-clock time in milliseconds since epoch"""
    return int(time.time() * 1000)


class ConfigCache:
    """
    Local configuration cache.

    Stores:
    - The persisted snapshot (one JSON object of string to string)
    - The freshness mark (ms timestamp of the last successful write)
    """

    def __init__(
        self,
        data_dir: Path,
        file_store: FileStore | None = None,
        preferences: PreferenceStore | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.cache_dir = Path(data_dir) / CACHE_DIR_NAME
        self.cache_file = self.cache_dir / CACHE_FILE_NAME
        self._files = file_store or LocalFileStore()
        self._preferences = preferences or JsonPreferenceStore(
            Path(data_dir) / PREFERENCES_FILE_NAME
        )
        self._clock = clock

    def ensure_local_store(self) -> None:
        """Create the cache directory, replacing a stray file of the same name"""
        if self.cache_dir.exists() and not self.cache_dir.is_dir():
            logger.warning(f"Replacing non-directory at {self.cache_dir}")
            self.cache_dir.unlink()
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def save(self, snapshot: dict[str, str]) -> None:
        """
        Persist snapshot, then record the freshness mark.

        The mark is only written once the snapshot write has succeeded.

        Raises:
            StorageError: if either write fails
        """
        try:
            self.ensure_local_store()
        except OSError as e:
            raise StorageError(str(e), path=str(self.cache_dir)) from e

        data = json.dumps(snapshot, ensure_ascii=False).encode("utf-8")
        try:
            self._files.write_atomic(self.cache_file, data)
        except OSError as e:
            raise StorageError(str(e), path=str(self.cache_file)) from e

        saved_at = self._clock()
        try:
            self._preferences.set_int(LAST_FETCHED_TIME_KEY, saved_at)
        except OSError as e:
            raise StorageError(f"Failed to record fetch time: {e}") from e

        logger.debug(
            f"Config cache saved ({len(snapshot)} keys)",
            extra={"key_count": len(snapshot), "saved_at": saved_at},
        )

    def load(self) -> dict[str, str]:
        """
        Load the persisted snapshot.

        Returns:
            Cached mapping, or empty dict if absent, unreadable or corrupt
        """
        try:
            raw = self._files.read_all(self.cache_file)
        except (OSError, StorageError) as e:
            logger.warning(f"Error reading cached config: {e}")
            return {}

        if not raw:
            return {}

        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring corrupt cached config: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning("Ignoring cached config: not a JSON object")
            return {}

        return {str(k): to_text(v) for k, v in data.items() if v is not None}

    async def save_async(self, snapshot: dict[str, str]) -> None:
        """Run ``save`` in a worker thread so the event loop is not blocked"""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.save, dict(snapshot))

    async def load_async(self) -> dict[str, str]:
        """Run ``load`` in a worker thread"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.load)

    def last_fetched_time(self) -> int | None:
        """Timestamp (ms) of the last successful save, if any"""
        try:
            return self._preferences.get_int(LAST_FETCHED_TIME_KEY)
        except (OSError, StorageError) as e:
            logger.warning(f"Error reading freshness mark: {e}")
            return None

    async def last_fetched_time_async(self) -> int | None:
        """Run ``last_fetched_time`` in a worker thread"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.last_fetched_time)


class CacheGate:
    """
    TTL decision for the persisted snapshot.

    Valid when ``now - last_fetched <= ttl`` (inclusive). A TTL of zero
    hours, or a missing freshness mark, is never valid.
    """

    def __init__(
        self,
        cache: ConfigCache,
        cache_limit_hours: int,
        clock: Callable[[], int] = now_ms,
    ):
        self.cache = cache
        self.cache_limit_hours = cache_limit_hours
        self._clock = clock

    @property
    def ttl_ms(self) -> int:
        return self.cache_limit_hours * MS_PER_HOUR

    def is_valid(self) -> bool:
        if self.cache_limit_hours <= 0:
            return False
        return self._is_fresh(self.cache.last_fetched_time())

    async def is_valid_async(self) -> bool:
        """``is_valid`` with the freshness mark read off the event loop"""
        if self.cache_limit_hours <= 0:
            return False
        return self._is_fresh(await self.cache.last_fetched_time_async())

    def _is_fresh(self, last_fetched: int | None) -> bool:
        if last_fetched is None:
            return False
        return self._clock() - last_fetched <= self.ttl_ms
