# mw_platform/reconcile.py
# Match scraped cinema titles against TMDb; synthesize an entity when nothing matches.
from __future__ import annotations

import re
import unicodedata
from typing import Any, Callable, Iterable, Mapping, Optional
from urllib.parse import urlsplit

from _logging import log
from providers.metadata._meta_TMDB import ProviderError, TmdbProvider

from .id_map import norm_media_id
from .models import CatalogEntity

__all__ = ["Reconciler", "slugify", "relative_poster"]


def slugify(text: str) -> str:
    folded = unicodedata.normalize("NFKD", text or "")
    ascii_txt = "".join(ch for ch in folded if not unicodedata.combining(ch))
    return re.sub(r"[^a-z0-9]+", "-", ascii_txt.lower()).strip("-")


def relative_poster(url: Optional[str], origin_host: str) -> Optional[str]:
    """Strip scheme and host from posters served by the cinema origin."""
    if not url:
        return None
    parts = urlsplit(url)
    if origin_host and parts.netloc.lower() == origin_host.lower():
        path = parts.path or "/"
        return f"{path}?{parts.query}" if parts.query else path
    return url


def _event_get(event: Optional[Mapping[str, Any]], *keys: str) -> Any:
    if not event:
        return None
    for k in keys:
        v = event.get(k)
        if v not in (None, ""):
            return v
    return None


class Reconciler:
    """Scraped (title, year) -> CatalogEntity.

    Lookup order: movie search by title + year, then title only. The first
    hit wins. A miss yields a synthetic entity whose id carries the
    configured prefix, so it can never equal a numeric TMDb id.
    """

    def __init__(self, tmdb: TmdbProvider, load_cfg: Callable[[], dict[str, Any]]) -> None:
        self.tmdb = tmdb
        self.load_cfg = load_cfg

    def _cinema_cfg(self) -> dict[str, Any]:
        return dict((self.load_cfg() or {}).get("cinema") or {})

    def _search(self, title: str, year: Optional[int]) -> list[dict[str, Any]]:
        try:
            data = self.tmdb.search("movie", title, 1, year=year, region=self.tmdb.region)
        except ProviderError as e:
            log(f"search failed for {title!r} ({year or '-'}): {e}", level="WARNING", module="RECONCILE")
            return []
        return [r for r in data.get("results") or [] if isinstance(r, Mapping)]

    def lookup(self, title: str, year: Optional[int]) -> Optional[dict[str, Any]]:
        hits = self._search(title, year) if year else []
        if not hits:
            hits = self._search(title, None)
        return hits[0] if hits else None

    def reconcile(self, scraped_title: str, scraped_year: Optional[int], event: Optional[Mapping[str, Any]] = None) -> CatalogEntity:
        title = (scraped_title or "").strip()
        hit = self.lookup(title, scraped_year) if title else None
        if hit is not None:
            ent = CatalogEntity.from_tmdb(hit, "movie")
            if not ent.title:
                ent.title = title
            if not ent.original_title:
                ent.original_title = title
            log(f"matched {title!r} -> {ent.id}", level="DEBUG", module="RECONCILE")
            return ent
        ent = self.synthesize(title, scraped_year, event)
        log(f"no match for {title!r}; synthetic {ent.id}", level="INFO", module="RECONCILE")
        return ent

    def synthetic_id(self, title: str, year: Optional[int], event: Optional[Mapping[str, Any]] = None) -> str:
        prefix = str(self._cinema_cfg().get("synthetic_prefix") or "cc-")
        event_id = _event_get(event, "filmId", "film_id", "id")
        if event_id is not None:
            candidate = norm_media_id(f"{prefix}{event_id}")
            if isinstance(candidate, str):
                return candidate
        slug = slugify(title)[:80].strip("-") or "untitled"
        return f"{prefix}{slug}-{year}" if year else f"{prefix}{slug}"

    def synthesize(self, title: str, year: Optional[int], event: Optional[Mapping[str, Any]] = None) -> CatalogEntity:
        poster = _event_get(event, "posterLink", "poster_link", "poster")
        released = _event_get(event, "releaseDate", "release_date")
        genre_ids = _event_get(event, "genre_ids") or []
        return CatalogEntity(
            id=self.synthetic_id(title, year, event),
            media_type="movie",
            title=title,
            original_title=title,
            overview=str(_event_get(event, "overview", "synopsis") or ""),
            poster_path=relative_poster(poster, str(self._cinema_cfg().get("origin_host") or "")),
            backdrop_path=None,
            release_date=str(released)[:10] if released else (str(year) if year else ""),
            vote_average=0.0,
            vote_count=0,
            genre_ids=[int(g) for g in genre_ids if str(g).isdigit()],
            popularity=0.0,
            adult=False,
        )

    def reconcile_many(self, rows: Iterable[Mapping[str, Any]]) -> list[tuple[Mapping[str, Any], CatalogEntity]]:
        """Reconcile scraped rows, skipping repeated titles (case-insensitive)."""
        seen: set[str] = set()
        out: list[tuple[Mapping[str, Any], CatalogEntity]] = []
        for row in rows:
            title = str(row.get("title") or "").strip()
            key = title.casefold()
            if not title or key in seen:
                continue
            seen.add(key)
            year = row.get("year")
            try:
                year = int(year) if year is not None else None
            except (TypeError, ValueError):
                year = None
            out.append((row, self.reconcile(title, year, row.get("event"))))
        return out
