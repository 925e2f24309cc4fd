# /api/_common.py
# MoziWatch - shared helpers for the HTTP routers
# Copyright (c) 2025-2026 MoziWatch
from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from _logging import log
from mw_platform.catalog import CatalogUnavailable
from mw_platform.id_map import MediaRef
from mw_platform.models import CatalogEntity
from mw_platform.runtime import Runtime
from providers.metadata._meta_TMDB import ProviderError


class EntityIn(BaseModel):
    title: str = ""
    poster_path: str | None = None
    release_date: str = ""
    vote_average: float = 0.0


class ItemIn(EntityIn):
    id: int | str
    media_type: str = "movie"


def runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def parse_ref(media_type: str, item_id: Any) -> MediaRef | None:
    try:
        return MediaRef(item_id, media_type)
    except ValueError:
        return None


def bad_ref(media_type: str, item_id: Any) -> JSONResponse:
    return JSONResponse({"ok": False, "error": f"invalid item {media_type}/{item_id}"}, status_code=400)


def entity_from(ref: MediaRef, body: EntityIn | None) -> CatalogEntity:
    b = body or EntityIn()
    return CatalogEntity(
        id=ref.id,
        media_type=ref.media_type,
        title=b.title,
        poster_path=b.poster_path,
        release_date=b.release_date,
        vote_average=b.vote_average,
    )


def int_list(raw: str | None) -> list[int]:
    out: list[int] = []
    for part in str(raw or "").replace("|", ",").split(","):
        part = part.strip()
        if part.isdigit():
            out.append(int(part))
    return out


def error_response(exc: Exception) -> JSONResponse:
    status = getattr(exc, "status", None)
    code = 404 if status == 404 else 502
    log(f"upstream error: {exc}", level="WARNING", module="API")
    return JSONResponse({"ok": False, "error": str(exc)}, status_code=code)


UPSTREAM_ERRORS = (CatalogUnavailable, ProviderError)
