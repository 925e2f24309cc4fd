# mw_platform/lists/_availability.py
# Streaming availability lookups for watchlist items.
from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import replace
from typing import Any, Optional

from _logging import log

from ..catalog import CatalogUnavailable
from ..id_map import MediaRef
from ..models import WatchlistItem, now_iso
from ._types import AvailabilitySource

MONETIZATION = ("flatrate", "rent", "buy")


def offered_provider_ids(providers: Optional[Mapping[str, Any]]) -> set[int]:
    ids: set[int] = set()
    for kind in MONETIZATION:
        for p in (providers or {}).get(kind) or []:
            if isinstance(p, Mapping) and p.get("provider_id") is not None:
                ids.add(int(p["provider_id"]))
    return ids


def is_available(providers: Optional[Mapping[str, Any]], allow: Iterable[int]) -> bool:
    return bool(offered_provider_ids(providers) & {int(x) for x in allow})


def apply_availability(
    item: WatchlistItem,
    providers: Optional[Mapping[str, Any]],
    allow: Iterable[int],
    checked_at: Optional[str] = None,
) -> WatchlistItem:
    return replace(
        item,
        availability=dict(providers) if providers else None,
        is_available=is_available(providers, allow),
        last_checked=checked_at or now_iso(),
    )


async def query(source: AvailabilitySource, ref: MediaRef, *, fresh: bool = False) -> Optional[dict[str, Any]]:
    """Region block for one title. Raises CatalogUnavailable on provider failure."""
    return await asyncio.to_thread(source.title_watch_providers, ref.media_type, ref.id, fresh=fresh)


async def query_many(source: AvailabilitySource, refs: Sequence[MediaRef]) -> dict[str, Optional[dict[str, Any]]]:
    """Concurrent lookups; failed titles are left out of the result."""
    wanted = [r for r in refs if not r.is_synthetic]
    if not wanted:
        return {}
    results = await asyncio.gather(*(query(source, r) for r in wanted), return_exceptions=True)
    out: dict[str, Optional[dict[str, Any]]] = {}
    for ref, res in zip(wanted, results):
        if isinstance(res, CatalogUnavailable):
            log(f"availability lookup failed for {ref}: {res}", level="WARNING", module="AVAIL")
            continue
        if isinstance(res, BaseException):
            raise res
        out[ref.key] = res
    return out
