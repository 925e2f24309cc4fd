# mw_platform/models.py
# Records shared by the catalog adapter, the reconciler and the list stores.
from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any, ClassVar, Generic, Iterable, Mapping, Optional, TypeVar, Union

from .id_map import MediaId, MediaRef, norm_media_id, norm_media_type

T = TypeVar("T")
L = TypeVar("L", bound="ListItem")


# --- timestamps ---------------------------------------------------------------

def now_iso() -> str:
    """UTC timestamp in the browser's toISOString() shape."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def iso_epoch(s: Any) -> Optional[float]:
    if s is None:
        return None
    txt = str(s).strip()
    if not txt:
        return None
    if txt.isdigit():
        n = int(txt)
        return n / 1000.0 if len(txt) >= 13 else float(n)
    try:
        dt = datetime.fromisoformat(txt.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def _as_float(v: Any, default: float = 0.0) -> float:
    try:
        return float(v)
    except (TypeError, ValueError):
        return default


def _as_int(v: Any, default: int = 0) -> int:
    try:
        return int(float(v))
    except (TypeError, ValueError):
        return default


def _opt_str(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


# --- catalog ------------------------------------------------------------------

@dataclass
class CatalogEntity:
    """Display record for a movie or TV show, tagged by media_type."""

    id: MediaId
    media_type: str = "movie"
    title: str = ""
    original_title: str = ""
    overview: str = ""
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    release_date: str = ""
    vote_average: float = 0.0
    vote_count: int = 0
    genre_ids: list[int] = field(default_factory=list)
    popularity: float = 0.0
    adult: bool = False

    @property
    def ref(self) -> MediaRef:
        return MediaRef(self.id, self.media_type)

    @classmethod
    def from_tmdb(cls, payload: Mapping[str, Any], media_type: str | None = None) -> "CatalogEntity":
        mt = norm_media_type(media_type or payload.get("media_type") or payload.get("mediaType"))
        if mt is None:
            mt = "tv" if ("name" in payload and "title" not in payload) else "movie"
        if mt == "tv":
            title = payload.get("name") or payload.get("title") or ""
            original = payload.get("original_name") or payload.get("original_title") or ""
            date = payload.get("first_air_date") or payload.get("release_date") or ""
        else:
            title = payload.get("title") or payload.get("name") or ""
            original = payload.get("original_title") or payload.get("original_name") or ""
            date = payload.get("release_date") or payload.get("first_air_date") or ""
        return cls(**cls._base_kwargs(payload, mt, title, original, date))

    @staticmethod
    def _base_kwargs(payload: Mapping[str, Any], mt: str, title: Any, original: Any, date: Any) -> dict[str, Any]:
        gids = payload.get("genre_ids")
        if gids is None and isinstance(payload.get("genres"), list):
            gids = [g.get("id") for g in payload["genres"] if isinstance(g, Mapping)]
        return {
            "id": norm_media_id(payload.get("id")) or 0,
            "media_type": mt,
            "title": str(title or ""),
            "original_title": str(original or ""),
            "overview": str(payload.get("overview") or ""),
            "poster_path": _opt_str(payload.get("poster_path")),
            "backdrop_path": _opt_str(payload.get("backdrop_path")),
            "release_date": str(date or ""),
            "vote_average": _as_float(payload.get("vote_average")),
            "vote_count": _as_int(payload.get("vote_count")),
            "genre_ids": [int(g) for g in (gids or []) if isinstance(g, (int, float)) or str(g).isdigit()],
            "popularity": _as_float(payload.get("popularity")),
            "adult": bool(payload.get("adult") or False),
        }

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Screening:
    cinema_id: str
    cinema_name: str
    city: str
    date: str
    time: str
    auditorium: str = ""
    booking_link: Optional[str] = None

    @property
    def sort_key(self) -> tuple[str, str]:
        return (self.date, self.time)

    @staticmethod
    def _norm_time(v: Any) -> str:
        m = re.match(r"^\s*(\d{1,2}):(\d{2})", str(v or ""))
        if not m:
            return str(v or "").strip()
        return f"{int(m.group(1)):02d}:{m.group(2)}"

    @classmethod
    def from_dict(cls, d: Mapping[str, Any], city: str = "") -> "Screening":
        return cls(
            cinema_id=str(d.get("cinemaId") or d.get("cinema_id") or ""),
            cinema_name=str(d.get("cinemaName") or d.get("cinema_name") or ""),
            city=str(d.get("city") or city or "").strip(),
            date=str(d.get("date") or "")[:10],
            time=cls._norm_time(d.get("time")),
            auditorium=str(d.get("auditorium") or ""),
            booking_link=_opt_str(d.get("bookingLink") or d.get("booking_link")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "cinemaId": self.cinema_id,
            "cinemaName": self.cinema_name,
            "city": self.city,
            "date": self.date,
            "time": self.time,
            "auditorium": self.auditorium,
            "bookingLink": self.booking_link,
        }


def group_screenings(rows: Iterable[Screening]) -> dict[str, list[Screening]]:
    """city -> screenings ordered by (date, time); cities in sorted order."""
    grouped: dict[str, list[Screening]] = {}
    for s in rows:
        if not s.city:
            continue
        grouped.setdefault(s.city, []).append(s)
    return {c: sorted(grouped[c], key=lambda s: s.sort_key) for c in sorted(grouped)}


@dataclass
class CinemaEntity(CatalogEntity):
    """A catalog entity that is playing in local cinemas.

    `cities`, `dates` and `screening_count` are derived from `screenings`
    on every access.
    """

    screenings: dict[str, list[Screening]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.set_screenings(s for rows in (self.screenings or {}).items() for s in self._with_city(*rows))

    @staticmethod
    def _with_city(city: str, rows: Iterable[Screening]) -> list[Screening]:
        return [s if s.city else replace(s, city=city) for s in rows]

    def set_screenings(self, rows: Iterable[Screening]) -> None:
        self.screenings = group_screenings(rows)

    @property
    def cities(self) -> list[str]:
        return sorted(c for c, rows in self.screenings.items() if rows)

    @property
    def dates(self) -> list[str]:
        return sorted({s.date for rows in self.screenings.values() for s in rows})

    @property
    def screening_count(self) -> int:
        return sum(len(rows) for rows in self.screenings.values())

    @classmethod
    def from_dataset(cls, payload: Mapping[str, Any]) -> "CinemaEntity":
        base = CatalogEntity.from_tmdb(payload, payload.get("media_type") or "movie")
        rows: list[Screening] = []
        raw = payload.get("screenings")
        if isinstance(raw, Mapping):
            for city, items in raw.items():
                for d in items or []:
                    if isinstance(d, Mapping):
                        rows.append(Screening.from_dict(d, city=str(city)))
        elif isinstance(raw, list):
            rows = [Screening.from_dict(d) for d in raw if isinstance(d, Mapping)]
        return cls.from_entity(base, rows)

    @classmethod
    def from_entity(cls, base: CatalogEntity, rows: Iterable[Screening]) -> "CinemaEntity":
        kw = {f.name: getattr(base, f.name) for f in fields(CatalogEntity)}
        ent = cls(**kw)
        ent.set_screenings(rows)
        return ent

    def to_dict(self) -> dict[str, Any]:
        out = CatalogEntity.to_dict(self)
        out["screenings"] = {c: [s.to_dict() for s in rows] for c, rows in self.screenings.items()}
        out["screeningCount"] = self.screening_count
        out["cities"] = self.cities
        out["dates"] = self.dates
        return out


@dataclass
class Page(Generic[T]):
    results: list[T]
    page: int = 1
    total_pages: int = 1
    total_results: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "page": self.page,
            "results": [r.to_dict() if hasattr(r, "to_dict") else r for r in self.results],
            "total_pages": self.total_pages,
            "total_results": self.total_results,
        }


# --- list items ---------------------------------------------------------------

@dataclass
class ListItem:
    """Common part of watchlist and favorite records (wire keys are camelCase)."""

    kind: ClassVar[str] = ""

    id: MediaId
    media_type: str
    title: str = ""
    poster_path: Optional[str] = None
    release_date: str = ""
    vote_average: float = 0.0
    added_at: str = ""

    @property
    def ref(self) -> MediaRef:
        return MediaRef(self.id, self.media_type)

    @property
    def key(self) -> str:
        return self.ref.key

    def _base_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "mediaType": self.media_type,
            "title": self.title,
            "posterPath": self.poster_path,
            "releaseDate": self.release_date,
            "voteAverage": self.vote_average,
            "addedAt": self.added_at,
        }

    @staticmethod
    def _base_kwargs(d: Mapping[str, Any]) -> dict[str, Any]:
        mt = norm_media_type(d.get("mediaType") or d.get("media_type"))
        mid = norm_media_id(d.get("id"))
        if mt is None or mid is None:
            raise ValueError(f"list item without identity: {dict(d)!r}")
        return {
            "id": mid,
            "media_type": mt,
            "title": str(d.get("title") or ""),
            "poster_path": _opt_str(d.get("posterPath", d.get("poster_path"))),
            "release_date": str(d.get("releaseDate") or d.get("release_date") or ""),
            "vote_average": _as_float(d.get("voteAverage", d.get("vote_average"))),
            "added_at": str(d.get("addedAt") or d.get("added_at") or ""),
        }

    @staticmethod
    def _entity_kwargs(entity: CatalogEntity, added_at: str | None) -> dict[str, Any]:
        return {
            "id": entity.id,
            "media_type": entity.media_type,
            "title": entity.title,
            "poster_path": entity.poster_path,
            "release_date": entity.release_date,
            "vote_average": entity.vote_average,
            "added_at": added_at or now_iso(),
        }


@dataclass
class WatchlistItem(ListItem):
    kind: ClassVar[str] = "watchlist"

    watched: bool = False
    availability: Optional[dict[str, Any]] = None
    is_available: Optional[bool] = None
    last_checked: Optional[str] = None

    @property
    def needs_availability(self) -> bool:
        return self.last_checked is None

    @classmethod
    def from_entity(cls, entity: CatalogEntity, added_at: str | None = None) -> "WatchlistItem":
        return cls(**cls._entity_kwargs(entity, added_at))

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "WatchlistItem":
        avail = d.get("availability")
        return cls(
            **cls._base_kwargs(d),
            watched=bool(d.get("watched") or False),
            availability=dict(avail) if isinstance(avail, Mapping) else None,
            is_available=d.get("isAvailable") if isinstance(d.get("isAvailable"), bool) else None,
            last_checked=_opt_str(d.get("lastChecked")),
        )

    def to_dict(self) -> dict[str, Any]:
        out = self._base_dict()
        out["watched"] = self.watched
        if self.last_checked is not None:
            out["availability"] = self.availability
            out["isAvailable"] = bool(self.is_available)
            out["lastChecked"] = self.last_checked
        return out


@dataclass
class FavoriteItem(ListItem):
    kind: ClassVar[str] = "favorites"

    liked: bool = False
    loved: bool = False

    @property
    def is_empty(self) -> bool:
        return not (self.liked or self.loved)

    @classmethod
    def from_entity(cls, entity: CatalogEntity, added_at: str | None = None) -> "FavoriteItem":
        return cls(**cls._entity_kwargs(entity, added_at))

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "FavoriteItem":
        return cls(
            **cls._base_kwargs(d),
            liked=bool(d.get("liked") or False),
            loved=bool(d.get("loved") or False),
        )

    def to_dict(self) -> dict[str, Any]:
        out = self._base_dict()
        out["liked"] = self.liked
        out["loved"] = self.loved
        return out


StoredItem = Union[WatchlistItem, FavoriteItem]

LIST_ITEM_TYPES: dict[str, Union[type[WatchlistItem], type[FavoriteItem]]] = {
    WatchlistItem.kind: WatchlistItem,
    FavoriteItem.kind: FavoriteItem,
}


def sort_by_added(items: Iterable[L]) -> list[L]:
    """Newest first; items with unparsable timestamps sink to the end."""
    return sorted(items, key=lambda it: iso_epoch(it.added_at) or 0.0, reverse=True)
