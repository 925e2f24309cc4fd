# mw_platform/cinema_dataset.py
# Build the static cinema.json document from scraped showtimes.
from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from _logging import log

from .catalog import CatalogAdapter, CatalogUnavailable
from .config_base import write_json_atomic
from .models import CinemaEntity, Screening, now_iso
from .reconcile import Reconciler


def _merge_rows(rows: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """One row per case-folded title, screenings concatenated."""
    by_title: dict[str, dict[str, Any]] = {}
    for row in rows:
        title = str(row.get("title") or "").strip()
        if not title:
            continue
        key = title.casefold()
        cur = by_title.get(key)
        if cur is None:
            by_title[key] = {**row, "title": title, "screenings": list(row.get("screenings") or [])}
        else:
            cur["screenings"].extend(row.get("screenings") or [])
    return list(by_title.values())


def _screenings(raw: Iterable[Any]) -> list[Screening]:
    return [Screening.from_dict(s) for s in raw if isinstance(s, Mapping)]


def build_dataset(
    rows: Iterable[Mapping[str, Any]],
    reconciler: Reconciler,
    catalog: Optional[CatalogAdapter] = None,
    updated_at: Optional[str] = None,
) -> dict[str, Any]:
    merged = _merge_rows(rows)
    entities: list[CinemaEntity] = []
    if merged:
        for row, ent in reconciler.reconcile_many(merged):
            entities.append(CinemaEntity.from_entity(ent, _screenings(row.get("screenings") or [])))
    elif catalog is not None:
        log("nothing scraped; using TMDb now playing", level="WARNING", module="CINEMA")
        try:
            entities = [CinemaEntity.from_entity(e, []) for e in catalog.now_playing(1).results]
        except CatalogUnavailable as e:
            log(f"now playing fallback failed: {e}", level="ERROR", module="CINEMA")

    entities.sort(key=lambda e: e.popularity, reverse=True)
    unique: dict[str, CinemaEntity] = {}
    for e in entities:
        cur = unique.get(e.ref.key)
        if cur is None:
            unique[e.ref.key] = e
        else:
            cur.set_screenings([s for ent in (cur, e) for ss in ent.screenings.values() for s in ss])
    movies = list(unique.values())

    cinemas: dict[str, dict[str, str]] = {}
    for e in movies:
        for ss in e.screenings.values():
            for s in ss:
                cinemas.setdefault(s.cinema_id or s.cinema_name, {"id": s.cinema_id, "name": s.cinema_name, "city": s.city})

    return {
        "lastUpdated": updated_at or now_iso(),
        "count": len(movies),
        "dates": sorted({d for e in movies for d in e.dates}),
        "cities": sorted({c for e in movies for c in e.cities}),
        "cinemas": sorted(cinemas.values(), key=lambda c: (c["city"], c["name"])),
        "movies": [e.to_dict() for e in movies],
    }


def write_dataset(path: Path, data: Mapping[str, Any]) -> None:
    write_json_atomic(path, dict(data))
