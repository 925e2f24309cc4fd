# mw_platform/runtime.py
# Wires config, TMDb client, catalog, reconciler and the list coordinators.
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from providers.metadata._meta_TMDB import TmdbProvider

from .catalog import CatalogAdapter
from .config_base import load_config
from .lists import (
    DocumentRemoteStore,
    FavoritesCoordinator,
    LocalListStore,
    WatchlistCoordinator,
)
from .reconcile import Reconciler


@dataclass
class Runtime:
    load_cfg: Callable[[], dict[str, Any]]
    tmdb: TmdbProvider
    catalog: CatalogAdapter
    reconciler: Reconciler
    watchlist: WatchlistCoordinator
    favorites: FavoritesCoordinator

    @property
    def user_id(self) -> Optional[str]:
        return self.watchlist.user_id

    def login(self, user_id: str) -> None:
        self.watchlist.login(user_id)
        self.favorites.login(user_id)

    def logout(self) -> None:
        self.watchlist.logout()
        self.favorites.logout()

    def close(self) -> None:
        self.watchlist.close()
        self.favorites.close()


def build_runtime(load_cfg: Callable[[], dict[str, Any]] = load_config) -> Runtime:
    cfg = load_cfg()
    tmdb = TmdbProvider(load_cfg)
    catalog = CatalogAdapter(tmdb, load_cfg)
    return Runtime(
        load_cfg=load_cfg,
        tmdb=tmdb,
        catalog=catalog,
        reconciler=Reconciler(tmdb, load_cfg),
        watchlist=WatchlistCoordinator(
            LocalListStore.from_config(cfg, "watchlist"),
            DocumentRemoteStore.from_config(cfg, "watchlist"),
            availability=catalog,
        ),
        favorites=FavoritesCoordinator(
            LocalListStore.from_config(cfg, "favorites"),
            DocumentRemoteStore.from_config(cfg, "favorites"),
        ),
    )
