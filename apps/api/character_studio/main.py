from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from character_studio.context import AppContext, build_context
from character_studio.core.config import load_settings
from character_studio.core.db import db_health
from character_studio.core.errors import ServiceError
from character_studio.core.obs import emit
from character_studio.modules.assets.router import router as assets_router
from character_studio.modules.characters.router import router as characters_router


def _err_envelope(error: str, message: str, request_id: Optional[str], details: Any, status_code: int):
    headers = {}
    if request_id:
        headers["X-Request-Id"] = request_id
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "request_id": request_id,
            "details": details,
        },
        headers=headers,
    )


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    App factory: `uvicorn --factory character_studio.main:create_app`.
    Without an explicit context, one is built from the environment.
    """
    ctx = context or build_context(load_settings())

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        ctx.close(wait=False)

    app = FastAPI(title="Character Studio API", version=ctx.settings.app_version, lifespan=lifespan)
    app.state.context = ctx

    # === OBSERVABILITY FOUNDATIONS ===
    # Contract locks:
    # - /health keys: status, version, db, storage, last_error_summary
    # - X-Request-Id in/out (missing -> generated; always echoed back; also on errors)
    # - Error envelope keys: error, message, request_id, details
    @app.middleware("http")
    async def _request_id_mw(request: Request, call_next):
        rid = request.headers.get("X-Request-Id") or uuid.uuid4().hex.upper()
        request.state.request_id = rid
        emit("info", "http.request.start", f"{request.method} {request.url.path}", rid, __name__)
        try:
            resp = await call_next(request)
        except Exception as e:
            emit("error", "http.request.exception", str(e), rid, __name__)
            raise
        resp.headers["X-Request-Id"] = rid
        emit("info", "http.request.end", f"{request.method} {request.url.path} -> {getattr(resp, 'status_code', None)}", rid, __name__)
        return resp

    @app.exception_handler(ServiceError)
    async def _service_exc_handler(request: Request, exc: ServiceError):
        rid = getattr(request.state, "request_id", None)
        return _err_envelope(exc.kind, exc.message, rid, exc.details, exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def _http_exc_handler(request: Request, exc: StarletteHTTPException):
        rid = getattr(request.state, "request_id", None)
        return _err_envelope("http_error", str(exc.detail), rid, {"status_code": exc.status_code}, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _validation_exc_handler(request: Request, exc: RequestValidationError):
        rid = getattr(request.state, "request_id", None)
        return _err_envelope("validation_error", "request validation failed", rid, exc.errors(), 422)

    @app.exception_handler(Exception)
    async def _unhandled_exc_handler(request: Request, exc: Exception):
        rid = getattr(request.state, "request_id", None)
        emit("error", "http.request.unhandled", str(exc), rid, __name__, type=type(exc).__name__)
        return _err_envelope("internal_error", "internal server error", rid, {"type": type(exc).__name__}, 500)
    # === END OBSERVABILITY FOUNDATIONS ===

    @app.get("/health")
    def health():
        db = db_health(ctx.settings.database_url)
        storage = ctx.assets.health()
        ok = db.get("status") == "ok" and storage.get("status") == "ok"
        return {
            "status": "ok" if ok else "degraded",
            "version": ctx.settings.app_version,
            "db": db,
            "storage": storage,
            "last_error_summary": db.get("error") or storage.get("error"),
        }

    app.include_router(assets_router)
    app.include_router(characters_router)
    return app
