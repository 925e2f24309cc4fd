# mw_platform/id_map.py
# Identity handling for catalog entities and list items.
# - MediaRef: composite (id, media_type) identity shared by catalog and lists.
# - Normalize media types and ids coming from TMDb, the cinema dataset and stored lists.
# - Stable keys for maps ("movie:550") and remote document ids ("movie_550").

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Literal, Mapping, Optional, Union

MediaType = Literal["movie", "tv"]
MediaId = Union[int, str]

MEDIA_TYPES: tuple[str, ...] = ("movie", "tv")

__all__ = [
    "MediaType", "MediaId", "MEDIA_TYPES",
    "MediaRef",
    "norm_media_type", "norm_media_id",
    "ref_from", "media_key", "doc_id",
]

_CLEAN_SENTINELS = {"none", "null", "nan", "undefined", ""}
_SYNTHETIC_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,127}$")


def norm_media_type(t: Any) -> Optional[str]:
    x = (str(t or "")).strip().lower()
    if x in ("movies", "movie", "film", "films"):
        return "movie"
    if x in ("tv", "show", "shows", "series"):
        return "tv"
    return None


def norm_media_id(v: Any) -> Optional[MediaId]:
    """Provider ids become ints; namespaced synthetic ids stay strings.

    Synthetic ids also name remote documents, so they are limited to
    letters, digits and `_.-` and may not contain `..`.
    """
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v if v > 0 else None
    if isinstance(v, float):
        return int(v) if v.is_integer() and v > 0 else None
    s = str(v).strip()
    if s.lower() in _CLEAN_SENTINELS:
        return None
    if re.fullmatch(r"\d+", s):
        n = int(s)
        return n if n > 0 else None
    if not _SYNTHETIC_ID.fullmatch(s) or ".." in s:
        return None
    return s


@dataclass(frozen=True)
class MediaRef:
    id: MediaId
    media_type: str

    def __post_init__(self) -> None:
        mt = norm_media_type(self.media_type)
        if mt is None:
            raise ValueError(f"unknown media type: {self.media_type!r}")
        mid = norm_media_id(self.id)
        if mid is None:
            raise ValueError(f"invalid media id: {self.id!r}")
        object.__setattr__(self, "media_type", mt)
        object.__setattr__(self, "id", mid)

    @property
    def key(self) -> str:
        return f"{self.media_type}:{self.id}"

    @property
    def doc_id(self) -> str:
        return f"{self.media_type}_{self.id}"

    @property
    def is_synthetic(self) -> bool:
        return not isinstance(self.id, int)

    def __str__(self) -> str:
        return self.key


def ref_from(obj: Mapping[str, Any]) -> Optional[MediaRef]:
    """Pull a MediaRef out of a stored list item or a catalog payload."""
    if not isinstance(obj, Mapping):
        return None
    mt = norm_media_type(obj.get("mediaType") or obj.get("media_type") or obj.get("type"))
    mid = norm_media_id(obj.get("id"))
    if mt is None or mid is None:
        return None
    return MediaRef(mid, mt)


def media_key(media_id: Any, media_type: Any) -> str:
    return MediaRef(media_id, media_type).key


def doc_id(media_id: Any, media_type: Any) -> str:
    return MediaRef(media_id, media_type).doc_id
