# mw_platform/lists/_merge.py
# One-shot login merge of the Local collection into the Remote one.
from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import replace

from ..models import FavoriteItem, StoredItem, WatchlistItem, iso_epoch, sort_by_added
from ._types import MergeResult


def _newer(a: StoredItem, b: StoredItem) -> bool:
    ta, tb = iso_epoch(a.added_at), iso_epoch(b.added_at)
    if ta is None:
        return False
    if tb is None:
        return True
    return ta > tb


def _merge_watchlist(local: WatchlistItem, remote: WatchlistItem) -> WatchlistItem:
    base = local if _newer(local, remote) else remote
    return replace(base, watched=local.watched or remote.watched)


def _merge_favorite(local: FavoriteItem, remote: FavoriteItem) -> FavoriteItem:
    return replace(remote, liked=local.liked or remote.liked, loved=local.loved or remote.loved)


def _index(items: Iterable[StoredItem]) -> dict[str, StoredItem]:
    out: dict[str, StoredItem] = {}
    for it in items:
        if isinstance(it, FavoriteItem) and it.is_empty:
            continue
        out.setdefault(it.key, it)
    return out


def merge(local: Sequence[StoredItem], remote: Sequence[StoredItem]) -> MergeResult:
    """Remote-seeded merge.

    Watchlist overlaps take the newer record by addedAt (remote on ties) and
    OR `watched`. Favorite overlaps keep the remote record and OR
    `liked`/`loved`. `to_push` lists every merged record that differs from
    what Remote holds.
    """
    rmap = _index(remote)
    merged: dict[str, StoredItem] = dict(rmap)
    to_push: list[StoredItem] = []

    for key, item in _index(local).items():
        r = rmap.get(key)
        if r is None:
            merged[key] = item
            to_push.append(item)
            continue
        if isinstance(item, WatchlistItem) and isinstance(r, WatchlistItem):
            m: StoredItem = _merge_watchlist(item, r)
        elif isinstance(item, FavoriteItem) and isinstance(r, FavoriteItem):
            m = _merge_favorite(item, r)
        else:
            raise TypeError(f"cannot merge {type(item).__name__} with {type(r).__name__}")
        merged[key] = m
        if m != r:
            to_push.append(m)

    dropped = [it.ref for it in remote if isinstance(it, FavoriteItem) and it.is_empty]
    return MergeResult(items=sort_by_added(merged.values()), to_push=sort_by_added(to_push), to_remove=dropped)
