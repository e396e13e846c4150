"""
Durable Local State

File-based storage primitives used by the config cache:
- LocalFileStore: whole-file reads and atomic (write-and-rename) writes
- JsonPreferenceStore: small integer preferences kept in one JSON file

Both guard in-process access with a lock. Reads never raise: absence and
I/O failures both come back as "no data".
"""

import json
import os
import threading
from pathlib import Path

from .exceptions import StorageError


class LocalFileStore:
    """
    Byte-level file store with atomic writes.

    Writes go to a sibling ``.tmp`` file which is flushed, fsynced and then
    renamed over the target, so a crash mid-write leaves either the old file
    or the new one, never a truncated mix.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def write_atomic(self, path: Path, data: bytes) -> None:
        """
        Atomically replace the contents of ``path``.

        Raises:
            StorageError: if the staging write or the rename fails
        """
        path = Path(path)
        temp_path = path.with_suffix(path.suffix + ".tmp")

        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                with open(temp_path, "wb") as f:
                    f.write(data)
                    f.flush()
                    if os.name != "nt":
                        os.fsync(f.fileno())
                temp_path.replace(path)
            except OSError as e:
                # Leave no staging file behind
                try:
                    temp_path.unlink()
                except OSError:
                    pass
                raise StorageError(str(e), path=str(path)) from e

    def read_all(self, path: Path) -> bytes | None:
        """Read the whole file, or None if it is absent or unreadable"""
        path = Path(path)
        with self._lock:
            if not path.is_file():
                return None
            try:
                with open(path, "rb") as f:
                    return f.read()
            except OSError:
                return None


class JsonPreferenceStore:
    """
    Integer preferences persisted as one JSON object.

    Mirrors a platform preference store: ``set_int`` / ``get_int`` by key.
    """

    def __init__(self, path: Path, file_store: LocalFileStore | None = None):
        self.path = Path(path)
        self._files = file_store or LocalFileStore()
        self._lock = threading.Lock()

    def _read(self) -> dict:
        raw = self._files.read_all(self.path)
        if not raw:
            return {}
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return {}
        return data if isinstance(data, dict) else {}

    def get_int(self, key: str) -> int | None:
        """Get an integer preference, or None if unset or not an integer"""
        with self._lock:
            value = self._read().get(key)
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        return value

    def set_int(self, key: str, value: int) -> None:
        """
        Set an integer preference.

        Raises:
            StorageError: if the preference file cannot be written
        """
        with self._lock:
            data = self._read()
            data[key] = int(value)
            self._files.write_atomic(self.path, json.dumps(data).encode("utf-8"))
