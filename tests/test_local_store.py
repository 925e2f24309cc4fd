# MoziWatch test scripts
from __future__ import annotations

import json
from pathlib import Path

from mw_platform.lists import LocalListStore
from mw_platform.models import FavoriteItem, WatchlistItem


def test_missing_file_loads_empty(tmp_path: Path) -> None:
    assert LocalListStore(tmp_path, "watchlist").load() == []


def test_save_then_load_uses_storage_key(tmp_path: Path) -> None:
    store = LocalListStore(tmp_path, "favorites")
    fav = FavoriteItem(id=5, media_type="tv", title="Dark", added_at="2024-01-01T00:00:00.000Z", loved=True)
    store.save([fav])

    path = tmp_path / "movie-search-favorites.json"
    assert path.exists()
    raw = json.loads(path.read_text("utf-8"))
    assert raw[0]["mediaType"] == "tv"
    assert raw[0]["loved"] is True
    assert store.load() == [fav]
    assert not list(tmp_path.glob("*.tmp"))


def test_corrupt_file_degrades_to_empty(tmp_path: Path) -> None:
    (tmp_path / "movie-search-watchlist.json").write_text("{not json", "utf-8")
    assert LocalListStore(tmp_path, "watchlist").load() == []


def test_malformed_entries_are_skipped(tmp_path: Path) -> None:
    (tmp_path / "movie-search-watchlist.json").write_text(
        json.dumps([{"id": 1, "mediaType": "movie", "title": "ok"}, {"title": "no id"}, "junk"]),
        "utf-8",
    )
    items = LocalListStore(tmp_path, "watchlist").load()
    assert [it.key for it in items] == ["movie:1"]
    assert isinstance(items[0], WatchlistItem)


def test_from_config_resolves_under_config_base(config_base: Path) -> None:
    store = LocalListStore.from_config({"lists": {"local_dir": "lists"}}, "watchlist")
    assert store.path == config_base / "lists" / "movie-search-watchlist.json"


def test_atomic_json_write_creates_parents_and_leaves_no_tmp(tmp_path: Path) -> None:
    from mw_platform.config_base import write_json_atomic

    target = tmp_path / "a" / "b" / "list.json"
    write_json_atomic(target, [{"id": 1}])
    write_json_atomic(target, [{"id": 2, "title": "Árvák"}])

    assert json.loads(target.read_text("utf-8")) == [{"id": 2, "title": "Árvák"}]
    assert target.read_text("utf-8").endswith("\n")
    assert [p.name for p in target.parent.iterdir()] == ["list.json"]
