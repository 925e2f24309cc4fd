# /api/catalogAPI.py
# MoziWatch - catalog browse, search, details and theaters mode
# Copyright (c) 2025-2026 MoziWatch
from __future__ import annotations

from fastapi import APIRouter, Path as FPath, Query, Request
from fastapi.responses import JSONResponse

from mw_platform.catalog import FEEDS, CinemaFilters, DiscoverFilters

from ._common import UPSTREAM_ERRORS, error_response, int_list, runtime

router = APIRouter(prefix="/api/catalog", tags=["catalog"])
cinema_router = APIRouter(prefix="/api/cinema", tags=["cinema"])


@router.get("/certifications")
def api_certifications(request: Request) -> JSONResponse:
    try:
        return JSONResponse({"ok": True, "certifications": runtime(request).catalog.certifications()})
    except UPSTREAM_ERRORS as e:
        return error_response(e)


@router.get("/{media_type}/discover")
def api_discover(
    request: Request,
    media_type: str = FPath(..., pattern="^(movie|tv)$"),
    page: int = Query(1, ge=1, le=500),
    genres: str | None = Query(None),
    certification: str | None = Query(None),
    providers: str | None = Query(None),
    sort_by: str = Query("popularity.desc"),
    min_rating: float | None = Query(None, ge=0, le=10),
    year_from: int | None = Query(None),
    year_to: int | None = Query(None),
) -> JSONResponse:
    filters = DiscoverFilters(
        genres=int_list(genres),
        certification=certification or None,
        providers=int_list(providers),
        sort_by=sort_by,
        min_rating=min_rating,
        year_from=year_from,
        year_to=year_to,
    )
    try:
        return JSONResponse(runtime(request).catalog.discover(media_type, filters, page).to_dict())
    except UPSTREAM_ERRORS as e:
        return error_response(e)


@router.get("/{media_type}/search")
def api_search(
    request: Request,
    media_type: str = FPath(..., pattern="^(movie|tv)$"),
    q: str = Query(..., min_length=1),
    page: int = Query(1, ge=1, le=500),
) -> JSONResponse:
    try:
        return JSONResponse(runtime(request).catalog.search(media_type, q, page).to_dict())
    except UPSTREAM_ERRORS as e:
        return error_response(e)


@router.get("/{media_type}/feeds/{feed}")
def api_feed(
    request: Request,
    media_type: str = FPath(..., pattern="^(movie|tv)$"),
    feed: str = FPath(...),
    page: int = Query(1, ge=1, le=500),
    window: str = Query("week", pattern="^(day|week)$"),
) -> JSONResponse:
    if media_type not in FEEDS.get(feed, ()):
        return JSONResponse({"ok": False, "error": f"unknown feed {media_type}/{feed}"}, status_code=404)
    try:
        return JSONResponse(runtime(request).catalog.feed(feed, media_type, page, window).to_dict())
    except UPSTREAM_ERRORS as e:
        return error_response(e)


@router.get("/{media_type}/genres")
def api_genres(request: Request, media_type: str = FPath(..., pattern="^(movie|tv)$")) -> JSONResponse:
    try:
        return JSONResponse({"ok": True, "genres": runtime(request).catalog.genres(media_type)})
    except UPSTREAM_ERRORS as e:
        return error_response(e)


@router.get("/{media_type}/providers")
def api_providers(request: Request, media_type: str = FPath(..., pattern="^(movie|tv)$")) -> JSONResponse:
    try:
        return JSONResponse({"ok": True, "providers": runtime(request).catalog.watch_providers(media_type)})
    except UPSTREAM_ERRORS as e:
        return error_response(e)


@router.get("/{media_type}/{tmdb_id}")
def api_details(request: Request, media_type: str = FPath(..., pattern="^(movie|tv)$"), tmdb_id: int = FPath(..., ge=1)) -> JSONResponse:
    try:
        return JSONResponse(runtime(request).catalog.details(media_type, tmdb_id))
    except UPSTREAM_ERRORS as e:
        return error_response(e)


@router.get("/{media_type}/{tmdb_id}/providers")
def api_title_providers(request: Request, media_type: str = FPath(..., pattern="^(movie|tv)$"), tmdb_id: int = FPath(..., ge=1)) -> JSONResponse:
    try:
        block = runtime(request).catalog.title_watch_providers(media_type, tmdb_id)
    except UPSTREAM_ERRORS as e:
        return error_response(e)
    return JSONResponse({"ok": True, "providers": block})


@router.get("/{media_type}/{tmdb_id}/videos")
def api_videos(request: Request, media_type: str = FPath(..., pattern="^(movie|tv)$"), tmdb_id: int = FPath(..., ge=1)) -> JSONResponse:
    try:
        return JSONResponse({"ok": True, "videos": runtime(request).catalog.videos(media_type, tmdb_id)})
    except UPSTREAM_ERRORS as e:
        return error_response(e)


@router.get("/{media_type}/{tmdb_id}/trailer")
def api_trailer(request: Request, media_type: str = FPath(..., pattern="^(movie|tv)$"), tmdb_id: int = FPath(..., ge=1)) -> JSONResponse:
    try:
        return JSONResponse({"ok": True, "trailer": runtime(request).catalog.trailer(media_type, tmdb_id)})
    except UPSTREAM_ERRORS as e:
        return error_response(e)


# --- theaters mode ------------------------------------------------------------

@cinema_router.get("")
def api_cinema(
    request: Request,
    city: str | None = Query(None),
    date: str | None = Query(None, pattern=r"^\d{4}-\d{2}-\d{2}$"),
    genres: str | None = Query(None),
    min_rating: float | None = Query(None, ge=0, le=10),
    sort_by: str = Query("screenings.desc"),
) -> JSONResponse:
    filters = CinemaFilters(city=city or None, date=date or None, genres=int_list(genres), min_rating=min_rating, sort_by=sort_by)
    try:
        return JSONResponse(runtime(request).catalog.get_cinema_entities(filters).to_dict())
    except UPSTREAM_ERRORS as e:
        return error_response(e)


@cinema_router.get("/index")
def api_cinema_index(request: Request) -> JSONResponse:
    return JSONResponse(runtime(request).catalog.cinema_index())


@cinema_router.post("/refresh")
def api_cinema_refresh(request: Request) -> JSONResponse:
    cache = runtime(request).catalog.cinema
    ok = cache.refresh()
    return JSONResponse({"ok": ok, "lastUpdated": cache.last_updated}, status_code=200 if ok else 502)
