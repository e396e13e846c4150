"""
Snapshot Store

Holds the active config snapshot and the caller defaults. Every value is
kept as text; typed getters parse on read and never raise.
"""

import re
import threading
from typing import Any, Mapping

from .types import to_text

DEFAULT_STRING_VALUE = ""
DEFAULT_INT_VALUE = 0
DEFAULT_BOOL_VALUE = False

# Signed 32-bit decimal, no whitespace or digit separators
INT_PATTERN = re.compile(r"[+-]?[0-9]+")
INT_MIN, INT_MAX = -(2 ** 31), 2 ** 31 - 1

TRUTHY_STRINGS = frozenset({"t", "true", "y", "yes", "1", "enable", "enabled", "on", "active"})


class SnapshotStore:
    """
    Active snapshot + defaults with thread-safe reads.

    Resolution order for a key: active snapshot, then defaults.
    """

    def __init__(self, defaults: Mapping[str, Any] | None = None):
        self._lock = threading.Lock()
        self._active: dict[str, str] = {}
        self._defaults: dict[str, str] = {}
        if defaults:
            self.set_defaults(defaults)

    # -- Mutation ---------------------------------------------------------

    def set_defaults(self, defaults: Mapping[str, Any]) -> None:
        """Replace the defaults mapping (values coerced to text)"""
        converted = {str(k): to_text(v) for k, v in defaults.items()}
        with self._lock:
            self._defaults = converted

    def replace(self, snapshot: Mapping[str, str]) -> None:
        """Swap in a new active snapshot"""
        converted = dict(snapshot)
        with self._lock:
            self._active = converted

    def activate_defaults(self) -> None:
        """Make the active snapshot a copy of the defaults"""
        with self._lock:
            self._active = dict(self._defaults)

    # -- Reads ------------------------------------------------------------

    @property
    def snapshot(self) -> dict[str, str]:
        """Copy of the active snapshot"""
        with self._lock:
            return dict(self._active)

    @property
    def defaults(self) -> dict[str, str]:
        with self._lock:
            return dict(self._defaults)

    def get(self, key: str) -> str | None:
        with self._lock:
            value = self._active.get(key)
            if value is None:
                value = self._defaults.get(key)
        return value

    def get_string(self, key: str) -> str:
        value = self.get(key)
        return value if value is not None else DEFAULT_STRING_VALUE

    def get_int(self, key: str) -> int:
        value = self.get(key)
        if value is None or not INT_PATTERN.fullmatch(value):
            return DEFAULT_INT_VALUE
        number = int(value)
        if not INT_MIN <= number <= INT_MAX:
            return DEFAULT_INT_VALUE
        return number

    def get_bool(self, key: str) -> bool:
        value = self.get(key)
        if value is None:
            return DEFAULT_BOOL_VALUE
        return value.lower() in TRUTHY_STRINGS
