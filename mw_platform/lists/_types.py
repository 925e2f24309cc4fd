# mw_platform/lists/_types.py
# Types and protocols for the list stores and the sync coordinator.
from __future__ import annotations

import enum
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..id_map import MediaRef
from ..models import StoredItem

Unsubscribe = Callable[[], None]
SnapshotHandler = Callable[[list[StoredItem]], None]
ErrorHandler = Callable[[BaseException], None]
Listener = Callable[[list[StoredItem]], None]


class SessionState(str, enum.Enum):
    ANONYMOUS = "anonymous"
    SYNCING = "syncing"
    SYNCED = "synced"


class LocalStore(Protocol):
    def load(self) -> list[StoredItem]: ...
    def save(self, items: Sequence[StoredItem]) -> None: ...


class RemoteStore(Protocol):
    def subscribe(self, user_id: str, on_update: SnapshotHandler, on_error: ErrorHandler) -> Unsubscribe: ...
    async def upsert(self, user_id: str, item: StoredItem) -> None: ...
    async def remove(self, user_id: str, ref: MediaRef) -> None: ...


class AvailabilitySource(Protocol):
    def title_watch_providers(self, media_type: str, tmdb_id: Any, *, fresh: bool = False) -> dict[str, Any] | None: ...
    def provider_ids(self) -> list[int]: ...


@dataclass
class MergeResult:
    items: list[StoredItem] = field(default_factory=list)
    to_push: list[StoredItem] = field(default_factory=list)
    to_remove: list[MediaRef] = field(default_factory=list)
