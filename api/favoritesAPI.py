# /api/favoritesAPI.py
# MoziWatch - liked / loved titles
# Copyright (c) 2025-2026 MoziWatch
from __future__ import annotations

from fastapi import APIRouter, Body, Path as FPath, Request
from fastapi.responses import JSONResponse

from ._common import EntityIn, bad_ref, entity_from, parse_ref, runtime

router = APIRouter(prefix="/api/favorites", tags=["favorites"])


@router.get("")
async def api_favorites(request: Request) -> JSONResponse:
    return JSONResponse(runtime(request).favorites.snapshot())


async def _toggle(request: Request, media_type: str, item_id: str, flag: str, body: EntityIn | None) -> JSONResponse:
    ref = parse_ref(media_type, item_id)
    if ref is None:
        return bad_ref(media_type, item_id)
    favs = runtime(request).favorites
    entity = entity_from(ref, body)
    item = favs.toggle_like(entity) if flag == "liked" else favs.toggle_love(entity)
    return JSONResponse(
        {
            "ok": True,
            "key": ref.key,
            "liked": favs.is_liked(ref),
            "loved": favs.is_loved(ref),
            "item": item.to_dict() if item is not None else None,
        }
    )


@router.post("/{media_type}/{item_id}/like")
async def api_favorites_like(
    request: Request,
    media_type: str = FPath(...),
    item_id: str = FPath(...),
    payload: EntityIn | None = Body(None),
) -> JSONResponse:
    return await _toggle(request, media_type, item_id, "liked", payload)


@router.post("/{media_type}/{item_id}/love")
async def api_favorites_love(
    request: Request,
    media_type: str = FPath(...),
    item_id: str = FPath(...),
    payload: EntityIn | None = Body(None),
) -> JSONResponse:
    return await _toggle(request, media_type, item_id, "loved", payload)


@router.delete("/{media_type}/{item_id}")
async def api_favorites_remove(request: Request, media_type: str = FPath(...), item_id: str = FPath(...)) -> JSONResponse:
    ref = parse_ref(media_type, item_id)
    if ref is None:
        return bad_ref(media_type, item_id)
    removed = runtime(request).favorites.remove(ref)
    return JSONResponse({"ok": removed}, status_code=200 if removed else 404)
