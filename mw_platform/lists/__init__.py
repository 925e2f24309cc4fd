# mw_platform/lists/__init__.py
# Watchlist and favorites: Local/Remote tiers and the sync coordinator.
from __future__ import annotations

from ._local_store import STORAGE_KEYS, LocalListStore
from ._merge import merge
from ._remote_store import DocumentRemoteStore
from ._types import LocalStore, MergeResult, RemoteStore, SessionState
from .coordinator import FavoritesCoordinator, ListCoordinator, WatchlistCoordinator

__all__ = [
    "STORAGE_KEYS",
    "LocalListStore",
    "DocumentRemoteStore",
    "LocalStore",
    "RemoteStore",
    "MergeResult",
    "SessionState",
    "merge",
    "ListCoordinator",
    "WatchlistCoordinator",
    "FavoritesCoordinator",
]
