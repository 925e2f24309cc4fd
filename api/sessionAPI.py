# /api/sessionAPI.py
# MoziWatch - identity events (login / logout) for list sync
# Copyright (c) 2025-2026 MoziWatch
from __future__ import annotations

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ._common import runtime

router = APIRouter(prefix="/api/session", tags=["session"])


class LoginIn(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=128, pattern=r"^[A-Za-z0-9_.@-]+$")


def _status(request: Request) -> dict[str, object]:
    rt = runtime(request)
    return {
        "ok": True,
        "user": rt.user_id,
        "watchlist": rt.watchlist.state.value,
        "favorites": rt.favorites.state.value,
    }


@router.get("")
async def api_session(request: Request) -> JSONResponse:
    return JSONResponse(_status(request))


@router.post("/login")
async def api_login(request: Request, payload: LoginIn = Body(...)) -> JSONResponse:
    runtime(request).login(payload.user_id)
    return JSONResponse(_status(request))


@router.post("/logout")
async def api_logout(request: Request) -> JSONResponse:
    runtime(request).logout()
    return JSONResponse(_status(request))
