# mw_platform/lists/_local_store.py
# Local tier: one JSON file per list kind under the config base dir.
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from collections.abc import Sequence
from typing import Any

from _logging import log

from ..config_base import resolve_path, write_json_atomic
from ..models import LIST_ITEM_TYPES, StoredItem

STORAGE_KEYS = {
    "watchlist": "movie-search-watchlist",
    "favorites": "movie-search-favorites",
}


@dataclass
class LocalListStore:
    base_path: Path
    kind: str

    def __post_init__(self) -> None:
        if self.kind not in STORAGE_KEYS:
            raise ValueError(f"unknown list kind: {self.kind!r}")
        self.base_path = Path(self.base_path)

    @classmethod
    def from_config(cls, cfg: dict[str, Any], kind: str) -> "LocalListStore":
        lists = (cfg or {}).get("lists") or {}
        return cls(resolve_path(str(lists.get("local_dir") or "lists")), kind)

    @property
    def key(self) -> str:
        return STORAGE_KEYS[self.kind]

    @property
    def path(self) -> Path:
        return self.base_path / f"{self.key}.json"

    def _read(self, p: Path, default: Any) -> Any:
        if not p.exists():
            return default
        try:
            return json.loads(p.read_text("utf-8"))
        except (OSError, ValueError) as e:
            log(f"{self.key}: unreadable, starting empty ({e})", level="WARNING", module="LOCAL")
            return default

    def load(self) -> list[StoredItem]:
        raw = self._read(self.path, [])
        if not isinstance(raw, list):
            log(f"{self.key}: expected a list, got {type(raw).__name__}", level="WARNING", module="LOCAL")
            return []
        item_cls = LIST_ITEM_TYPES[self.kind]
        out: list[StoredItem] = []
        for row in raw:
            if not isinstance(row, dict):
                continue
            try:
                out.append(item_cls.from_dict(row))
            except (TypeError, ValueError) as e:
                log(f"{self.key}: skipping malformed entry: {e}", level="WARNING", module="LOCAL")
        return out

    def save(self, items: Sequence[StoredItem]) -> None:
        try:
            write_json_atomic(self.path, [it.to_dict() for it in items])
        except OSError as e:
            log(f"{self.key}: save failed: {e}", level="ERROR", module="LOCAL")
