# MoziWatch test scripts
from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import Any

import pytest

from mw_platform.id_map import MediaRef
from mw_platform.lists import DocumentRemoteStore
from mw_platform.models import ListItem, WatchlistItem


def _item(id_: int) -> WatchlistItem:
    return WatchlistItem(id=id_, media_type="movie", title=f"m{id_}", added_at=f"2024-01-0{id_}T00:00:00Z")


def test_subscribe_delivers_initial_and_change_snapshots(tmp_path: Path) -> None:
    store = DocumentRemoteStore(tmp_path, "watchlist")
    seen: list[list[str]] = []

    async def main() -> None:
        unsub = store.subscribe("u1", lambda items: seen.append(sorted(i.key for i in items)), lambda e: None)
        await asyncio.sleep(0)
        await store.upsert("u1", _item(1))
        await store.upsert("u1", _item(2))
        await store.remove("u1", MediaRef(1, "movie"))
        await asyncio.sleep(0)
        unsub()
        await store.upsert("u1", _item(3))
        await asyncio.sleep(0)

    asyncio.run(main())
    assert seen == [[], ["movie:1"], ["movie:1", "movie:2"], ["movie:2"]]
    assert (tmp_path / "users" / "u1" / "watchlist" / "movie_3.json").exists()


def test_users_are_isolated(tmp_path: Path) -> None:
    store = DocumentRemoteStore(tmp_path, "watchlist")

    async def main() -> tuple[list[ListItem], list[ListItem]]:
        await store.upsert("alice", _item(1))
        return store.snapshot("alice"), store.snapshot("bob")

    alice, bob = asyncio.run(main())
    assert [i.key for i in alice] == ["movie:1"]
    assert bob == []


def test_unsafe_user_id_rejected(tmp_path: Path) -> None:
    store = DocumentRemoteStore(tmp_path, "favorites")
    with pytest.raises(ValueError):
        store.snapshot("../etc")


def test_subscribe_requires_running_loop(tmp_path: Path) -> None:
    store = DocumentRemoteStore(tmp_path, "watchlist")
    with pytest.raises(RuntimeError):
        store.subscribe("u1", lambda items: None, lambda e: None)


def test_item_with_unsafe_id_is_never_written(tmp_path: Path) -> None:
    store = DocumentRemoteStore(tmp_path, "watchlist")
    bad = WatchlistItem(id="../../../../escaped", media_type="movie", title="x")

    with pytest.raises(ValueError):
        asyncio.run(store.upsert("u1", bad))
    assert [p for p in tmp_path.rglob("*") if p.is_file()] == []


def test_documents_stay_inside_user_collection(tmp_path: Path) -> None:
    store = DocumentRemoteStore(tmp_path, "favorites")
    p = store._doc_path("u1", MediaRef("cc-kisfilm-2024", "movie"))
    assert p == tmp_path / "users" / "u1" / "favorites" / "movie_cc-kisfilm-2024.json"


def test_remove_of_missing_document_still_notifies(tmp_path: Path) -> None:
    store = DocumentRemoteStore(tmp_path, "watchlist")
    seen: list[int] = []

    async def main() -> None:
        store.subscribe("u1", lambda items: seen.append(len(items)), lambda e: None)
        await asyncio.sleep(0)
        await store.remove("u1", MediaRef(1, "movie"))
        await asyncio.sleep(0)

    asyncio.run(main())
    assert seen == [0, 0]


def test_document_writes_run_off_the_event_loop(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    from mw_platform.lists import _remote_store

    real_write = _remote_store.write_json_atomic
    writers: list[int] = []

    def recording_write(p: Path, data: Any) -> None:
        writers.append(threading.get_ident())
        real_write(p, data)

    monkeypatch.setattr(_remote_store, "write_json_atomic", recording_write)
    store = DocumentRemoteStore(tmp_path, "watchlist")

    async def main() -> int:
        await store.upsert("u1", _item(1))
        return threading.get_ident()

    loop_thread = asyncio.run(main())
    assert writers and loop_thread not in writers
    assert [i.key for i in store.snapshot("u1")] == ["movie:1"]
