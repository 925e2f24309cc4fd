# mw_platform/catalog.py
# Catalog adapter: TMDb feeds/discover/search plus the static cinema dataset.
from __future__ import annotations

import json
import unicodedata
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Mapping, Optional

import requests

from _logging import log
from providers.metadata._meta_TMDB import ProviderError, TmdbProvider

from .config_base import resolve_path
from .id_map import norm_media_type
from .models import CatalogEntity, CinemaEntity, Page, iso_epoch

__all__ = [
    "CatalogUnavailable",
    "DiscoverFilters",
    "CinemaFilters",
    "CinemaDatasetCache",
    "CatalogAdapter",
    "load_cinema_dataset",
    "filter_cinema",
    "sort_cinema",
    "best_trailer",
    "CINEMA_SORTS",
    "FEEDS",
]

CINEMA_SORTS = ("screenings.desc", "vote_average.desc", "primary_release_date.desc", "title.asc")
DEFAULT_CINEMA_SORT = "screenings.desc"

FEEDS: dict[str, tuple[str, ...]] = {
    "popular": ("movie", "tv"),
    "trending": ("movie", "tv"),
    "upcoming": ("movie",),
    "now_playing": ("movie",),
    "new_releases": ("movie",),
    "on_the_air": ("tv",),
}


class CatalogUnavailable(RuntimeError):
    """Read path failed; callers render an 'unavailable' state."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


def _mt(media_type: Any) -> str:
    mt = norm_media_type(media_type)
    if mt is None:
        raise ValueError(f"unknown media type: {media_type!r}")
    return mt


# --- filters ------------------------------------------------------------------

@dataclass
class DiscoverFilters:
    genres: list[int] = field(default_factory=list)
    certification: Optional[str] = None
    providers: list[int] = field(default_factory=list)
    sort_by: str = "popularity.desc"
    min_rating: Optional[float] = None
    year_from: Optional[int] = None
    year_to: Optional[int] = None


@dataclass
class CinemaFilters:
    city: Optional[str] = None
    date: Optional[str] = None
    genres: list[int] = field(default_factory=list)
    min_rating: Optional[float] = None
    sort_by: str = DEFAULT_CINEMA_SORT


def discover_params(media_type: str, filters: DiscoverFilters, page: int, region: str, min_votes: int = 50) -> dict[str, Any]:
    """TMDb query parameters for a discover call."""
    p: dict[str, Any] = {
        "page": page,
        "watch_region": region,
        "with_watch_monetization_types": "flatrate",
        "sort_by": filters.sort_by or "popularity.desc",
    }
    if media_type == "movie":
        p["region"] = region
    if filters.genres:
        p["with_genres"] = ",".join(str(g) for g in filters.genres)
    if filters.certification and media_type == "movie":
        p["certification_country"] = region
        p["certification"] = filters.certification
    if filters.providers:
        p["with_watch_providers"] = "|".join(str(x) for x in filters.providers)
    if filters.min_rating and filters.min_rating > 0:
        p["vote_average.gte"] = filters.min_rating
        p["vote_count.gte"] = min_votes
    date_field = "primary_release_date" if media_type == "movie" else "first_air_date"
    if filters.year_from:
        p[f"{date_field}.gte"] = f"{filters.year_from}-01-01"
    if filters.year_to:
        p[f"{date_field}.lte"] = f"{filters.year_to}-12-31"
    return p


# --- cinema dataset -----------------------------------------------------------

def load_cinema_dataset(cfg: Mapping[str, Any]) -> Optional[dict[str, Any]]:
    """Read cinema.json from the configured URL or path. None when unavailable."""
    cc = (cfg or {}).get("cinema") or {}
    url = str(cc.get("dataset_url") or "").strip()
    try:
        if url:
            timeout = float(((cfg or {}).get("tmdb") or {}).get("timeout", 15))
            r = requests.get(url, headers={"Accept": "application/json"}, timeout=timeout)
            r.raise_for_status()
            data = r.json()
        else:
            p = resolve_path(str(cc.get("dataset_path") or "data/cinema.json"))
            if not p.exists():
                log(f"cinema dataset not found at {p}", level="WARNING", module="CINEMA")
                return None
            data = json.loads(p.read_text(encoding="utf-8"))
    except (requests.exceptions.RequestException, OSError, ValueError) as e:
        log(f"cinema dataset not available: {e}", level="WARNING", module="CINEMA")
        return None
    if not isinstance(data, dict) or not isinstance(data.get("movies"), list):
        log("cinema dataset has no movies list", level="WARNING", module="CINEMA")
        return None
    return data


class CinemaDatasetCache:
    """Holds the parsed dataset from first load until refresh() or reset()."""

    def __init__(self, loader: Callable[[], Optional[Mapping[str, Any]]]) -> None:
        self._loader = loader
        self._entities: Optional[list[CinemaEntity]] = None
        self.last_updated: Optional[str] = None
        self.loaded_at: Optional[float] = None

    @property
    def loaded(self) -> bool:
        return self._entities is not None

    def get(self) -> Optional[list[CinemaEntity]]:
        if self._entities is None:
            self.refresh()
        return None if self._entities is None else list(self._entities)

    def refresh(self) -> bool:
        raw = self._loader()
        if raw is None:
            return False
        out: list[CinemaEntity] = []
        for m in raw.get("movies") or []:
            if not isinstance(m, Mapping):
                continue
            try:
                out.append(CinemaEntity.from_dataset(m))
            except (TypeError, ValueError) as e:
                log(f"skipping cinema entry {m.get('id')!r}: {e}", level="WARNING", module="CINEMA")
        self._entities = out
        self.last_updated = raw.get("lastUpdated")
        self.loaded_at = datetime.now(timezone.utc).timestamp()
        log(f"cinema dataset loaded: {len(out)} movies (updated {self.last_updated})", level="INFO", module="CINEMA")
        return True

    def reset(self) -> None:
        self._entities = None
        self.last_updated = None
        self.loaded_at = None


def _collation_key(title: str) -> tuple[str, str]:
    folded = unicodedata.normalize("NFKD", title or "")
    base = "".join(ch for ch in folded if not unicodedata.combining(ch)).casefold()
    return (base, (title or "").casefold())


def _release_epoch(e: CinemaEntity) -> float:
    v = iso_epoch(e.release_date) if len(e.release_date or "") >= 10 else None
    if v is None and (e.release_date or "")[:4].isdigit():
        v = iso_epoch(f"{e.release_date[:4]}-01-01")
    return v if v is not None else float("-inf")


def sort_cinema(items: Iterable[CinemaEntity], sort_by: Optional[str]) -> list[CinemaEntity]:
    rows = list(items)
    key = sort_by if sort_by in CINEMA_SORTS else DEFAULT_CINEMA_SORT
    if key == "vote_average.desc":
        return sorted(rows, key=lambda e: e.vote_average, reverse=True)
    if key == "primary_release_date.desc":
        return sorted(rows, key=_release_epoch, reverse=True)
    if key == "title.asc":
        return sorted(rows, key=lambda e: _collation_key(e.title))
    return sorted(rows, key=lambda e: e.screening_count, reverse=True)


def filter_cinema(items: Iterable[CinemaEntity], filters: CinemaFilters) -> list[CinemaEntity]:
    """city -> date -> genre (any) -> minimum rating -> sort."""
    rows = list(items)
    if filters.city:
        rows = [e for e in rows if filters.city in e.cities]
    if filters.date:
        rows = [e for e in rows if filters.date in e.dates]
    if filters.genres:
        wanted = set(filters.genres)
        rows = [e for e in rows if wanted.intersection(e.genre_ids)]
    if filters.min_rating and filters.min_rating > 0:
        rows = [e for e in rows if e.vote_average >= filters.min_rating]
    return sort_cinema(rows, filters.sort_by)


# --- videos -------------------------------------------------------------------

def best_trailer(videos: Iterable[Mapping[str, Any]]) -> Optional[dict[str, Any]]:
    vids = [dict(v) for v in videos or []]
    trailers = [v for v in vids if v.get("site") == "YouTube" and v.get("type") in ("Trailer", "Teaser")]
    for v in trailers:
        if v.get("official"):
            return v
    if trailers:
        return trailers[0]
    yt = [v for v in vids if v.get("site") == "YouTube"]
    return yt[0] if yt else None


# --- adapter ------------------------------------------------------------------

class CatalogAdapter:
    def __init__(
        self,
        tmdb: TmdbProvider,
        load_cfg: Callable[[], dict[str, Any]],
        cinema_cache: Optional[CinemaDatasetCache] = None,
    ) -> None:
        self.tmdb = tmdb
        self.load_cfg = load_cfg
        self.cinema = cinema_cache or CinemaDatasetCache(lambda: load_cinema_dataset(self.load_cfg()))

    def _cfg(self, section: str) -> dict[str, Any]:
        return dict((self.load_cfg() or {}).get(section) or {})

    def provider_ids(self) -> list[int]:
        return [int(x) for x in self._cfg("tmdb").get("provider_ids") or []]

    def _call(self, what: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except ProviderError as e:
            raise CatalogUnavailable(f"{what}: {e}", status=e.status) from e

    @staticmethod
    def _page(data: Mapping[str, Any], media_type: str) -> Page[CatalogEntity]:
        results = [CatalogEntity.from_tmdb(r, media_type) for r in data.get("results") or [] if isinstance(r, Mapping)]
        return Page(
            results=results,
            page=int(data.get("page") or 1),
            total_pages=int(data.get("total_pages") or 1),
            total_results=int(data.get("total_results") or len(results)),
        )

    # discover / search

    def discover(self, media_type: str, filters: Optional[DiscoverFilters] = None, page: int = 1) -> Page[CatalogEntity]:
        mt = _mt(media_type)
        min_votes = int(self._cfg("cinema").get("min_vote_count", 50))
        params = discover_params(mt, filters or DiscoverFilters(), page, self.tmdb.region, min_votes)
        return self._page(self._call("discover", self.tmdb.discover, mt, params), mt)

    def search(self, media_type: str, query: str, page: int = 1) -> Page[CatalogEntity]:
        mt = _mt(media_type)
        if not (query or "").strip():
            return Page(results=[], page=1, total_pages=1, total_results=0)
        return self._page(self._call("search", self.tmdb.search, mt, query.strip(), page), mt)

    # feeds

    def popular(self, media_type: str = "movie", page: int = 1) -> Page[CatalogEntity]:
        mt = _mt(media_type)
        fn = self.tmdb.movie_list if mt == "movie" else self.tmdb.tv_list
        return self._page(self._call("popular", fn, "popular", page), mt)

    def trending(self, media_type: str = "movie", window: str = "week") -> Page[CatalogEntity]:
        mt = _mt(media_type)
        if window not in ("day", "week"):
            window = "week"
        return self._page(self._call("trending", self.tmdb.trending, mt, window), mt)

    def upcoming(self, page: int = 1) -> Page[CatalogEntity]:
        return self._page(self._call("upcoming", self.tmdb.movie_list, "upcoming", page), "movie")

    def now_playing(self, page: int = 1) -> Page[CatalogEntity]:
        return self._page(self._call("now_playing", self.tmdb.movie_list, "now_playing", page), "movie")

    def on_the_air(self, page: int = 1) -> Page[CatalogEntity]:
        return self._page(self._call("on_the_air", self.tmdb.tv_list, "on_the_air", page), "tv")

    def new_releases(self, page: int = 1, today: Optional[date] = None) -> Page[CatalogEntity]:
        end = today or datetime.now(timezone.utc).date()
        start = end - timedelta(days=90)
        region = self.tmdb.region
        params = {
            "page": page,
            "region": region,
            "sort_by": "release_date.desc",
            "primary_release_date.gte": start.isoformat(),
            "primary_release_date.lte": end.isoformat(),
            "with_watch_monetization_types": "flatrate",
            "watch_region": region,
        }
        return self._page(self._call("new_releases", self.tmdb.discover, "movie", params), "movie")

    def feed(self, name: str, media_type: str = "movie", page: int = 1, window: str = "week") -> Page[CatalogEntity]:
        mt = _mt(media_type)
        if mt not in FEEDS.get(name, ()):
            raise ValueError(f"feed {name!r} is not available for {mt}")
        if name == "popular":
            return self.popular(mt, page)
        if name == "trending":
            return self.trending(mt, window)
        if name == "on_the_air":
            return self.on_the_air(page)
        return getattr(self, name)(page)

    # filter metadata

    def genres(self, media_type: str = "movie") -> list[dict[str, Any]]:
        return self._call("genres", self.tmdb.genres, _mt(media_type))

    def watch_providers(self, media_type: str = "movie") -> list[dict[str, Any]]:
        """Regional providers limited to the allow-list, in allow-list order."""
        rows = self._call("watch_providers", self.tmdb.watch_providers, _mt(media_type))
        by_id = {int(r.get("provider_id") or 0): r for r in rows if isinstance(r, Mapping)}
        return [by_id[pid] for pid in self.provider_ids() if pid in by_id]

    def certifications(self) -> list[dict[str, Any]]:
        certs = self._call("certifications", self.tmdb.certifications, "movie")
        return list(certs.get(self.tmdb.region) or certs.get(self.tmdb.fallback_region) or [])

    # details

    def details(self, media_type: str, tmdb_id: Any) -> dict[str, Any]:
        mt = _mt(media_type)
        raw = self._call("details", self.tmdb.details, mt, tmdb_id)
        out = dict(raw)
        out.update(CatalogEntity.from_tmdb(raw, mt).to_dict())
        return out

    def title_watch_providers(self, media_type: str, tmdb_id: Any, *, fresh: bool = False) -> Optional[dict[str, Any]]:
        results = self._call(
            "title_watch_providers", self.tmdb.title_watch_providers, _mt(media_type), tmdb_id, fresh=fresh
        )
        return results.get(self.tmdb.region) or results.get(self.tmdb.fallback_region) or None

    def videos(self, media_type: str, tmdb_id: Any) -> list[dict[str, Any]]:
        mt = _mt(media_type)
        vids = self._call("videos", self.tmdb.videos, mt, tmdb_id, self.tmdb.language)
        if not vids:
            vids = self._call("videos", self.tmdb.videos, mt, tmdb_id, self.tmdb.fallback_language)
        return vids

    def trailer(self, media_type: str, tmdb_id: Any) -> Optional[dict[str, Any]]:
        return best_trailer(self.videos(media_type, tmdb_id))

    # theaters mode

    def get_cinema_entities(self, filters: Optional[CinemaFilters] = None) -> Page[Any]:
        """Dataset entities filtered client-side; TMDb now playing when the dataset is unavailable."""
        items = self.cinema.get()
        if items is None:
            log("cinema dataset unavailable, falling back to now playing", level="WARNING", module="CINEMA")
            return self.now_playing(1)
        rows = filter_cinema(items, filters or CinemaFilters())
        return Page(results=rows, page=1, total_pages=1, total_results=len(rows))

    def cinema_index(self) -> dict[str, Any]:
        items = self.cinema.get() or []
        return {
            "lastUpdated": self.cinema.last_updated,
            "cities": sorted({c for e in items for c in e.cities}),
            "dates": sorted({d for e in items for d in e.dates}),
        }
