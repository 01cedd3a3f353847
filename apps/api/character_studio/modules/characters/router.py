from __future__ import annotations

import queue
from typing import Any, Dict

from fastapi import APIRouter, Depends, Path, Query, Request
from fastapi.responses import StreamingResponse

from character_studio.core.auth import Caller, current_caller
from character_studio.core.config import MIN_KEEPALIVE_SECONDS

from .schemas import (
    CharacterOut,
    CharactersListOut,
    PageOut,
    TuningStartIn,
    TuningStartOut,
    VisualizationIn,
    VisualizationOut,
)
from .service import list_library
from .store import TERMINAL

router = APIRouter(tags=["characters"])


def _ctx(request: Request):
    return request.app.state.context


def _request_id(request: Request) -> str:
    st = getattr(request, "state", None)
    rid = getattr(st, "request_id", None) if st is not None else None
    return str(rid) if rid else ""


def _clamp_limit(raw: int | None) -> int:
    if raw is None:
        return 50
    try:
        v = int(raw)
    except Exception:
        return 50
    if v < 1:
        v = 1
    if v > 200:
        v = 200
    return v


def _clamp_offset(raw: int | None) -> int:
    if raw is None:
        return 0
    try:
        v = int(raw)
    except Exception:
        return 0
    return max(v, 0)


def _sse(snapshot: Dict[str, Any]) -> str:
    body = CharacterOut(**snapshot).model_dump_json()
    return f"id: {snapshot.get('revision', 0)}\nevent: character\ndata: {body}\n\n"


@router.get("/characters", response_model=CharactersListOut)
def api_list_characters(
    request: Request,
    limit: int | None = Query(None),
    offset: int | None = Query(None),
    caller: Caller = Depends(current_caller),
) -> CharactersListOut:
    lim = _clamp_limit(limit)
    off = _clamp_offset(offset)
    items, total = list_library(_ctx(request).store, caller, limit=lim, offset=off)
    has_more = (off + lim) < total
    return CharactersListOut(items=items, page=PageOut(offset=off, limit=lim, total=total, has_more=has_more))


@router.post("/characters/tuning", response_model=TuningStartOut, status_code=202)
def api_start_character_tuning(
    body: TuningStartIn,
    request: Request,
    caller: Caller = Depends(current_caller),
) -> TuningStartOut:
    character_id = _ctx(request).submitter.start_character_tuning(caller, body.files, request_id=_request_id(request))
    return TuningStartOut(character_id=character_id)


@router.get("/characters/{character_id}", response_model=CharacterOut)
def api_get_character(
    request: Request,
    character_id: str = Path(...),
    caller: Caller = Depends(current_caller),
) -> CharacterOut:
    return CharacterOut(**_ctx(request).store.require(character_id))


@router.get("/characters/{character_id}/events")
def api_character_events(
    request: Request,
    character_id: str = Path(...),
    caller: Caller = Depends(current_caller),
) -> StreamingResponse:
    """
    Server-Sent Events: the first event is the current state, then one event per
    change. The stream ends after a terminal status (ready|error).
    """
    ctx = _ctx(request)
    updates: "queue.Queue[Dict[str, Any]]" = queue.Queue()
    # NotFound is raised here, before any bytes are streamed
    sub = ctx.hub.subscribe(character_id, updates.put)
    keepalive = max(ctx.settings.events_keepalive_seconds, MIN_KEEPALIVE_SECONDS)

    def stream():
        try:
            while True:
                try:
                    snapshot = updates.get(timeout=keepalive)
                except queue.Empty:
                    yield ": keep-alive\n\n"
                    continue
                yield _sse(snapshot)
                if snapshot.get("status") in TERMINAL:
                    return
        finally:
            sub.unsubscribe()

    return StreamingResponse(
        stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/characters/{character_id}/visualizations", response_model=VisualizationOut)
def api_generate_character_visualization(
    body: VisualizationIn,
    request: Request,
    character_id: str = Path(...),
    caller: Caller = Depends(current_caller),
) -> VisualizationOut:
    result = _ctx(request).visualizer.generate(caller, character_id, body.prompt, request_id=_request_id(request))
    return VisualizationOut(base64_image=result.base64_image, mime_type=result.mime_type)
