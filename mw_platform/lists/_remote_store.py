# mw_platform/lists/_remote_store.py
# Remote tier: per-user document collections with live subscriptions.
from __future__ import annotations

import asyncio
import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from _logging import log

from ..config_base import resolve_path, write_json_atomic
from ..id_map import MediaRef
from ..models import LIST_ITEM_TYPES, StoredItem
from ._types import ErrorHandler, SnapshotHandler, Unsubscribe

_SAFE_UID = re.compile(r"^[A-Za-z0-9_.@-]{1,128}$")


@dataclass(eq=False)
class _Subscription:
    user_id: str
    on_update: SnapshotHandler
    on_error: ErrorHandler
    loop: asyncio.AbstractEventLoop
    active: bool = True


@dataclass
class DocumentRemoteStore:
    """users/<uid>/<collection>/<mediaType>_<id>.json

    Every change delivers the full collection to the user's subscribers
    on their event loop, in write order.
    """

    base_path: Path
    kind: str
    _subs: dict[str, list[_Subscription]] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.kind not in LIST_ITEM_TYPES:
            raise ValueError(f"unknown list kind: {self.kind!r}")
        self.base_path = Path(self.base_path)

    @classmethod
    def from_config(cls, cfg: dict[str, Any], kind: str) -> "DocumentRemoteStore":
        lists = (cfg or {}).get("lists") or {}
        return cls(resolve_path(str(lists.get("remote_dir") or "remote")), kind)

    @property
    def collection(self) -> str:
        return self.kind

    def _user_dir(self, user_id: str) -> Path:
        if not _SAFE_UID.match(user_id or ""):
            raise ValueError(f"invalid user id: {user_id!r}")
        return self.base_path / "users" / user_id / self.collection

    def _doc_path(self, user_id: str, ref: MediaRef) -> Path:
        d = self._user_dir(user_id)
        p = d / f"{ref.doc_id}.json"
        if p.resolve().parent != d.resolve():
            raise ValueError(f"document id escapes the collection: {ref.doc_id!r}")
        return p

    # --- reads --------------------------------------------------------------

    def snapshot(self, user_id: str) -> list[StoredItem]:
        d = self._user_dir(user_id)
        if not d.exists():
            return []
        item_cls = LIST_ITEM_TYPES[self.kind]
        out: list[StoredItem] = []
        for p in sorted(d.glob("*.json")):
            try:
                out.append(item_cls.from_dict(json.loads(p.read_text("utf-8"))))
            except (OSError, ValueError, TypeError, AttributeError) as e:
                log(f"{self.kind}/{user_id}: skipping document {p.name}: {e}", level="WARNING", module="REMOTE")
        return out

    # --- subscriptions ------------------------------------------------------

    def subscribe(self, user_id: str, on_update: SnapshotHandler, on_error: ErrorHandler) -> Unsubscribe:
        """Must be called with a running event loop; the initial snapshot arrives on it."""
        sub = _Subscription(user_id, on_update, on_error, asyncio.get_running_loop())
        self._subs.setdefault(user_id, []).append(sub)
        self._schedule(sub)

        def _unsubscribe() -> None:
            sub.active = False
            rows = self._subs.get(user_id) or []
            if sub in rows:
                rows.remove(sub)
            if not rows:
                self._subs.pop(user_id, None)

        return _unsubscribe

    def _schedule(self, sub: _Subscription) -> None:
        try:
            items = self.snapshot(sub.user_id)
        except (OSError, ValueError) as e:
            sub.loop.call_soon(self._deliver_error, sub, e)
            return
        sub.loop.call_soon(self._deliver, sub, items)

    @staticmethod
    def _deliver(sub: _Subscription, items: list[StoredItem]) -> None:
        if sub.active:
            sub.on_update(items)

    @staticmethod
    def _deliver_error(sub: _Subscription, exc: BaseException) -> None:
        if sub.active:
            sub.on_error(exc)

    def _notify(self, user_id: str) -> None:
        for sub in list(self._subs.get(user_id) or []):
            self._schedule(sub)

    # --- writes -------------------------------------------------------------

    async def upsert(self, user_id: str, item: StoredItem) -> None:
        p = self._doc_path(user_id, item.ref)
        await asyncio.to_thread(write_json_atomic, p, item.to_dict())
        self._notify(user_id)

    async def remove(self, user_id: str, ref: MediaRef) -> None:
        p = self._doc_path(user_id, ref)
        await asyncio.to_thread(p.unlink, missing_ok=True)
        self._notify(user_id)
