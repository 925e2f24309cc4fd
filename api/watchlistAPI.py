# /api/watchlistAPI.py
# MoziWatch - watchlist endpoints
# Copyright (c) 2025-2026 MoziWatch
from __future__ import annotations

from fastapi import APIRouter, Body, Path as FPath, Request
from fastapi.responses import JSONResponse

from ._common import ItemIn, bad_ref, entity_from, parse_ref, runtime

router = APIRouter(prefix="/api/watchlist", tags=["watchlist"])


@router.get("")
async def api_watchlist(request: Request) -> JSONResponse:
    return JSONResponse(runtime(request).watchlist.snapshot())


@router.post("")
async def api_watchlist_add(request: Request, payload: ItemIn = Body(...)) -> JSONResponse:
    ref = parse_ref(payload.media_type, payload.id)
    if ref is None:
        return bad_ref(payload.media_type, payload.id)
    added = runtime(request).watchlist.add(entity_from(ref, payload))
    return JSONResponse({"ok": True, "added": added, "key": ref.key})


@router.post("/availability")
async def api_watchlist_availability(request: Request) -> JSONResponse:
    updated = await runtime(request).watchlist.check_availability()
    return JSONResponse({"ok": True, "updated": updated})


@router.delete("/{media_type}/{item_id}")
async def api_watchlist_remove(request: Request, media_type: str = FPath(...), item_id: str = FPath(...)) -> JSONResponse:
    ref = parse_ref(media_type, item_id)
    if ref is None:
        return bad_ref(media_type, item_id)
    removed = runtime(request).watchlist.remove(ref)
    return JSONResponse({"ok": removed}, status_code=200 if removed else 404)


@router.post("/{media_type}/{item_id}/watched")
async def api_watchlist_watched(request: Request, media_type: str = FPath(...), item_id: str = FPath(...)) -> JSONResponse:
    ref = parse_ref(media_type, item_id)
    if ref is None:
        return bad_ref(media_type, item_id)
    item = runtime(request).watchlist.toggle_watched(ref)
    if item is None:
        return JSONResponse({"ok": False, "error": "not on watchlist"}, status_code=404)
    return JSONResponse({"ok": True, "item": item.to_dict()})


@router.post("/{media_type}/{item_id}/availability")
async def api_watchlist_refresh(request: Request, media_type: str = FPath(...), item_id: str = FPath(...)) -> JSONResponse:
    ref = parse_ref(media_type, item_id)
    if ref is None:
        return bad_ref(media_type, item_id)
    item = await runtime(request).watchlist.refresh_availability(ref)
    if item is None:
        return JSONResponse({"ok": False, "error": "availability not refreshed"}, status_code=404)
    return JSONResponse({"ok": True, "item": item.to_dict()})
