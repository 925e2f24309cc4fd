from __future__ import annotations

from fastapi import FastAPI

from .catalogAPI import cinema_router, router as catalog_router
from .favoritesAPI import router as favorites_router
from .sessionAPI import router as session_router
from .watchlistAPI import router as watchlist_router

__all__ = [
    "catalog_router",
    "cinema_router",
    "watchlist_router",
    "favorites_router",
    "session_router",
    "register",
]


def register(app: FastAPI) -> None:
    for r in (catalog_router, cinema_router, watchlist_router, favorites_router, session_router):
        app.include_router(r)
