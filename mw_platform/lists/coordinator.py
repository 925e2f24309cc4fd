# mw_platform/lists/coordinator.py
# Session state machine over the Local and Remote list tiers.
from __future__ import annotations

import asyncio
import itertools
from collections.abc import Iterable
from dataclasses import replace
from typing import Any, ClassVar, Optional

from _logging import log

from ..catalog import CatalogUnavailable
from ..id_map import MediaRef
from ..models import CatalogEntity, FavoriteItem, StoredItem, WatchlistItem, now_iso, sort_by_added
from . import _availability as avail
from ._merge import merge
from ._types import AvailabilitySource, Listener, LocalStore, RemoteStore, SessionState, Unsubscribe

__all__ = ["ListCoordinator", "WatchlistCoordinator", "FavoritesCoordinator"]


class ListCoordinator:
    """Sole writer of one list kind.

    ANONYMOUS -> SYNCING on login, SYNCING -> SYNCED on the first Remote
    snapshot (after the one-shot merge), back to ANONYMOUS on logout.
    Local writes happen synchronously; Remote writes are fire-and-forget
    tasks whose failures are logged.
    """

    kind: ClassVar[str] = ""

    def __init__(self, local: LocalStore, remote: Optional[RemoteStore] = None) -> None:
        self.local = local
        self.remote = remote
        self.state = SessionState.ANONYMOUS
        self.user_id: Optional[str] = None
        self._merged_for: Optional[str] = None
        self._pre_login: list[StoredItem] = []
        self._pending: list[tuple[str, Any]] = []
        self._inflight: dict[str, tuple[int, Optional[StoredItem]]] = {}
        self._seq = itertools.count(1)
        self._unsub: Optional[Unsubscribe] = None
        self._listeners: list[Listener] = []
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False
        self._items: dict[str, StoredItem] = self._index(local.load())

    @property
    def log_module(self) -> str:
        return self.kind.upper()

    # --- collection ---------------------------------------------------------

    @staticmethod
    def _valid(item: StoredItem) -> bool:
        return not (isinstance(item, FavoriteItem) and item.is_empty)

    def _index(self, items: Iterable[StoredItem]) -> dict[str, StoredItem]:
        out: dict[str, StoredItem] = {}
        for it in items:
            if self._valid(it):
                out.setdefault(it.key, it)
        return out

    @property
    def items(self) -> list[StoredItem]:
        return sort_by_added(self._items.values())

    def get(self, ref: MediaRef) -> Optional[StoredItem]:
        return self._items.get(ref.key)

    def contains(self, ref: MediaRef) -> bool:
        return ref.key in self._items

    def __len__(self) -> int:
        return len(self._items)

    # --- listeners ----------------------------------------------------------

    def add_listener(self, cb: Listener) -> Unsubscribe:
        self._listeners.append(cb)

        def _remove() -> None:
            if cb in self._listeners:
                self._listeners.remove(cb)

        return _remove

    def _publish(self) -> None:
        snapshot = self.items
        for cb in list(self._listeners):
            try:
                cb(snapshot)
            except Exception as e:
                log(f"listener failed: {e}", level="WARNING", module=self.log_module)

    def _commit(self) -> None:
        self.local.save(self.items)
        self._publish()

    # --- remote mirror ------------------------------------------------------

    async def _remote_write(self, user_id: str, key: str, seq: int, op: str, payload: Any) -> None:
        try:
            if self.remote is None:
                return
            if op == "upsert":
                await self.remote.upsert(user_id, payload)
            else:
                await self.remote.remove(user_id, payload)
        except Exception as e:
            log(f"remote {op} failed for {key}: {e}", level="WARNING", module=self.log_module)
        finally:
            cur = self._inflight.get(key)
            if cur is not None and cur[0] == seq:
                del self._inflight[key]

    def _mirror(self, op: str, payload: Any) -> None:
        if self.remote is None or self.user_id is None or self.state is SessionState.ANONYMOUS:
            return
        if self.state is SessionState.SYNCING:
            self._pending.append((op, payload))
            return
        key = payload.key
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log(f"no event loop; remote {op} for {key} skipped", level="WARNING", module=self.log_module)
            return
        seq = next(self._seq)
        self._inflight[key] = (seq, payload if op == "upsert" else None)
        task = loop.create_task(self._remote_write(self.user_id, key, seq, op, payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _put(self, item: StoredItem) -> None:
        self._items[item.key] = item
        self._commit()
        self._mirror("upsert", item)

    def _drop(self, ref: MediaRef) -> bool:
        if self._items.pop(ref.key, None) is None:
            return False
        self._commit()
        self._mirror("remove", ref)
        return True

    async def flush(self) -> None:
        """Wait for queued Remote writes and the snapshots they trigger."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await asyncio.sleep(0)

    # --- session ------------------------------------------------------------

    def login(self, user_id: str) -> None:
        if not user_id:
            raise ValueError("user id is required")
        if self.remote is None:
            log("no remote store configured; staying local", level="INFO", module=self.log_module)
            return
        if user_id == self.user_id and self.state is not SessionState.ANONYMOUS and self._unsub is not None:
            return
        if self.user_id is not None and self.user_id != user_id:
            self._teardown()
            self._merged_for = None
        self._closed = False
        self.user_id = user_id
        self._pre_login = self.items
        self._pending = []
        self.state = SessionState.SYNCING
        log(f"login {user_id}: syncing", level="INFO", module=self.log_module)
        self._unsub = self.remote.subscribe(user_id, self._on_snapshot, self._on_error)

    def logout(self) -> None:
        if self.state is SessionState.ANONYMOUS:
            return
        log(f"logout {self.user_id}", level="INFO", module=self.log_module)
        self._teardown()
        self._merged_for = None
        self.user_id = None
        self.state = SessionState.ANONYMOUS

    def close(self) -> None:
        """Stop listening to Remote and drop late availability results.

        The coordinator goes back to ANONYMOUS; a later login() subscribes
        and merges again.
        """
        self._closed = True
        self._teardown()
        self._merged_for = None
        self.user_id = None
        self.state = SessionState.ANONYMOUS

    def _teardown(self) -> None:
        if self._unsub is not None:
            self._unsub()
            self._unsub = None
        self._pending = []
        self._inflight.clear()

    def _on_error(self, exc: BaseException) -> None:
        log(f"remote subscription error: {exc}", level="ERROR", module=self.log_module)

    def _on_snapshot(self, remote_items: list[StoredItem]) -> None:
        if self._closed or self.state is SessionState.ANONYMOUS:
            return
        if self.state is SessionState.SYNCING and self._merged_for != self.user_id:
            self._merge_first(remote_items)
        elif self.state is SessionState.SYNCED:
            self._apply_remote(remote_items)

    def _merge_first(self, remote_items: list[StoredItem]) -> None:
        result = merge(self._pre_login, remote_items)
        self._merged_for = self.user_id
        merged = {it.key: it for it in result.items}
        push = {it.key: it for it in result.to_push}
        removes = {ref.key: ref for ref in result.to_remove}
        for op, payload in self._pending:
            if op == "upsert":
                merged[payload.key] = payload
                push[payload.key] = payload
                removes.pop(payload.key, None)
            else:
                merged.pop(payload.key, None)
                push.pop(payload.key, None)
                removes[payload.key] = payload
        self._pending = []
        self._pre_login = []
        self._items = merged
        self.state = SessionState.SYNCED
        log(
            f"merged {len(merged)} items for {self.user_id} (push {len(push)}, remove {len(removes)})",
            level="INFO",
            module=self.log_module,
        )
        self._commit()
        for item in push.values():
            self._mirror("upsert", item)
        for ref in removes.values():
            self._mirror("remove", ref)

    def _apply_remote(self, remote_items: list[StoredItem]) -> None:
        dropped = [it.ref for it in remote_items if not self._valid(it)]
        items = self._index(remote_items)
        for key, (_, pending) in self._inflight.items():
            if pending is None:
                items.pop(key, None)
            else:
                items[key] = pending
        self._items = items
        self._commit()
        for ref in dropped:
            self._mirror("remove", ref)

    # --- shared ops ---------------------------------------------------------

    def remove(self, ref: MediaRef) -> bool:
        return self._drop(ref)

    def snapshot(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "user": self.user_id,
            "count": len(self._items),
            "items": [it.to_dict() for it in self.items],
        }


class WatchlistCoordinator(ListCoordinator):
    kind: ClassVar[str] = "watchlist"

    def __init__(
        self,
        local: LocalStore,
        remote: Optional[RemoteStore] = None,
        availability: Optional[AvailabilitySource] = None,
    ) -> None:
        super().__init__(local, remote)
        self.availability = availability

    def add(self, entity: CatalogEntity) -> bool:
        """False when the title is already on the list."""
        if self.contains(entity.ref):
            return False
        self._put(WatchlistItem.from_entity(entity))
        return True

    def toggle_watched(self, ref: MediaRef) -> Optional[WatchlistItem]:
        cur = self.get(ref)
        if not isinstance(cur, WatchlistItem):
            return None
        new = replace(cur, watched=not cur.watched)
        self._put(new)
        return new

    async def check_availability(self) -> int:
        """Look up every never-checked item at once and commit them as one batch."""
        if self.availability is None or self._closed:
            return 0
        refs = [it.ref for it in self.items if isinstance(it, WatchlistItem) and it.needs_availability]
        results = await avail.query_many(self.availability, refs)
        if self._closed:
            log("availability results discarded after close", level="DEBUG", module=self.log_module)
            return 0
        allow = self.availability.provider_ids()
        stamp = now_iso()
        updated: list[WatchlistItem] = []
        for key, providers in results.items():
            cur = self._items.get(key)
            if not isinstance(cur, WatchlistItem):
                continue
            new = avail.apply_availability(cur, providers, allow, stamp)
            self._items[key] = new
            updated.append(new)
        if updated:
            self._commit()
            for it in updated:
                self._mirror("upsert", it)
        return len(updated)

    async def refresh_availability(self, ref: MediaRef) -> Optional[WatchlistItem]:
        if self.availability is None or self._closed or ref.is_synthetic or not self.contains(ref):
            return None
        try:
            providers = await avail.query(self.availability, ref, fresh=True)
        except CatalogUnavailable as e:
            log(f"availability refresh failed for {ref}: {e}", level="WARNING", module=self.log_module)
            return None
        cur = self.get(ref)
        if self._closed or not isinstance(cur, WatchlistItem):
            return None
        new = avail.apply_availability(cur, providers, self.availability.provider_ids())
        self._put(new)
        return new


class FavoritesCoordinator(ListCoordinator):
    kind: ClassVar[str] = "favorites"

    def _toggle(self, entity: CatalogEntity, flag: str) -> Optional[FavoriteItem]:
        cur = self.get(entity.ref)
        if not isinstance(cur, FavoriteItem):
            new = replace(FavoriteItem.from_entity(entity), **{flag: True})
            self._put(new)
            return new
        new = replace(cur, **{flag: not getattr(cur, flag)})
        if new.is_empty:
            self._drop(cur.ref)
            return None
        self._put(new)
        return new

    def toggle_like(self, entity: CatalogEntity) -> Optional[FavoriteItem]:
        return self._toggle(entity, "liked")

    def toggle_love(self, entity: CatalogEntity) -> Optional[FavoriteItem]:
        return self._toggle(entity, "loved")

    def is_liked(self, ref: MediaRef) -> bool:
        cur = self.get(ref)
        return isinstance(cur, FavoriteItem) and cur.liked

    def is_loved(self, ref: MediaRef) -> bool:
        cur = self.get(ref)
        return isinstance(cur, FavoriteItem) and cur.loved
