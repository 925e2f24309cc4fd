# moziwatch.py
# MoziWatch - HTTP entry point
# Copyright (c) 2025-2026 MoziWatch
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from _logging import log
from api import register
from mw_platform.config_base import config_path, load_config
from mw_platform.runtime import Runtime, build_runtime


def _is_debug_enabled() -> bool:
    return bool((load_config().get("runtime") or {}).get("debug"))


def create_app(runtime: Optional[Runtime] = None) -> FastAPI:
    rt = runtime or build_runtime(load_config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        rt.close()

    app = FastAPI(title="MoziWatch", lifespan=lifespan)
    app.state.runtime = rt

    @app.middleware("http")
    async def conditional_access_logger(request: Request, call_next):
        t0 = time.time()
        response = await call_next(request)
        status = getattr(response, "status_code", 0) or 0
        if status >= 500 or (status >= 400 and _is_debug_enabled()):
            dt_ms = int((time.time() - t0) * 1000)
            path_qs = request.url.path + (f"?{request.url.query}" if request.url.query else "")
            log(f'"{request.method} {path_qs}" {status} ({dt_ms} ms)', level="WARNING", module="HTTP")
        return response

    @app.get("/api/health")
    def api_health() -> JSONResponse:
        return JSONResponse({"ok": True, "cinema": rt.catalog.cinema.loaded, "user": rt.user_id})

    register(app)
    return app


def main(host: Optional[str] = None, port: Optional[int] = None) -> None:
    cfg = load_config()
    rt_cfg = cfg.get("runtime") or {}
    host = host or str(rt_cfg.get("host") or "0.0.0.0")
    port = int(port or rt_cfg.get("port") or 8787)
    debug = bool(rt_cfg.get("debug"))
    debug_http = bool(rt_cfg.get("debug_http"))

    log(f"MoziWatch running on http://{host}:{port} (config: {config_path()})", level="INFO", module="MAIN")
    if not (cfg.get("tmdb") or {}).get("api_key"):
        log("TMDb API key is not set; catalog endpoints will fail", level="WARNING", module="MAIN")

    uvicorn.run(
        create_app(),
        host=host,
        port=port,
        log_level=("debug" if debug else "warning"),
        access_log=debug_http,
    )


if __name__ == "__main__":
    main()
