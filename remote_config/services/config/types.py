"""
Config Engine Types

Outcome tags, realtime events, and the collaborator interfaces the engine
consumes (document queries, realtime delivery, durable storage).
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, AsyncIterator, Mapping, Protocol, Sequence, runtime_checkable


class SourceType(str, Enum):
    """Where the active configs were resolved from"""
    CACHE = "cache"
    NETWORK = "network"
    DEFAULTS = "defaults"
    FAILURE = "failure"


@dataclass(frozen=True)
class FetchOutcome:
    """Result of one fetch_and_activate call. ``error`` is set only for FAILURE."""
    source: SourceType
    error: BaseException | None = None

    @classmethod
    def cache(cls) -> "FetchOutcome":
        return cls(SourceType.CACHE)

    @classmethod
    def network(cls) -> "FetchOutcome":
        return cls(SourceType.NETWORK)

    @classmethod
    def defaults(cls) -> "FetchOutcome":
        return cls(SourceType.DEFAULTS)

    @classmethod
    def failure(cls, error: BaseException) -> "FetchOutcome":
        return cls(SourceType.FAILURE, error)

    @property
    def is_failure(self) -> bool:
        return self.source is SourceType.FAILURE

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source.value,
            "error": str(self.error) if self.error is not None else None,
        }


@dataclass(frozen=True)
class RealtimeEvent:
    """One message delivered on a realtime channel"""
    events: list[str] = field(default_factory=list)
    payload: Mapping[str, Any] = field(default_factory=dict)
    channels: list[str] = field(default_factory=list)

    @property
    def descriptor(self) -> str | None:
        # First entry carries the fully qualified event name
        return self.events[0] if self.events else None

    @property
    def is_delete(self) -> bool:
        descriptor = self.descriptor
        return descriptor is not None and "delete" in descriptor


def to_text(value: Any) -> str:
    """Canonical text form of a config value"""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


# ---------------------------------------------------------------------------
# Collaborator interfaces
# ---------------------------------------------------------------------------


@runtime_checkable
class DocumentTransport(Protocol):
    """Paginated document listing for one collection."""

    async def list_documents(
        self,
        database_id: str,
        collection_id: str,
        limit: int,
        cursor_after: str | None = None,
    ) -> Sequence[Mapping[str, Any]]:
        """Return up to ``limit`` records after ``cursor_after``; ``[]`` when exhausted."""
        ...


@runtime_checkable
class RealtimeTransport(Protocol):
    """Push subscription delivering RealtimeEvents."""

    def subscribe(self, channels: list[str]) -> AsyncIterator[RealtimeEvent]:
        ...


@runtime_checkable
class FileStore(Protocol):
    def write_atomic(self, path: Path, data: bytes) -> None:
        ...

    def read_all(self, path: Path) -> bytes | None:
        ...


@runtime_checkable
class PreferenceStore(Protocol):
    def get_int(self, key: str) -> int | None:
        ...

    def set_int(self, key: str, value: int) -> None:
        ...
