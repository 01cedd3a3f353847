from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Path, Request

from character_studio.core.auth import Caller, current_caller
from character_studio.core.ids import new_ulid
from character_studio.core.storage import guess_media_type

from .schemas import UploadOut

router = APIRouter(prefix="/assets", tags=["assets"])

# lock: 20 MiB per training image
MAX_UPLOAD_BYTES = 20 * 1024 * 1024


def _clean_filename(raw: str) -> str:
    name = (raw or "").replace("\\", "/").rsplit("/", 1)[-1].strip()
    if not name or name in (".", ".."):
        raise HTTPException(status_code=400, detail="invalid filename")
    return name


async def _read_bounded(request: Request, limit: int) -> bytes:
    too_large = HTTPException(status_code=413, detail=f"upload exceeds {limit} bytes")
    declared = request.headers.get("content-length")
    if declared and declared.strip().isdigit() and int(declared) > limit:
        raise too_large

    buf = bytearray()
    async for chunk in request.stream():
        buf.extend(chunk)
        if len(buf) > limit:
            raise too_large
    return bytes(buf)


@router.post("/uploads/{filename}", response_model=UploadOut, status_code=201)
async def upload_training_image(
    request: Request,
    filename: str = Path(...),
    caller: Caller = Depends(current_caller),
) -> UploadOut:
    """Store one raw-body training image under the caller's prefix; returns its asset path."""
    name = _clean_filename(filename)
    mime_type = request.headers.get("content-type") or guess_media_type(name)
    mime_type = mime_type.split(";", 1)[0].strip().lower()
    if not mime_type.startswith("image/"):
        raise HTTPException(status_code=415, detail=f"unsupported media type: {mime_type}")

    data = await _read_bounded(request, MAX_UPLOAD_BYTES)
    if not data:
        raise HTTPException(status_code=400, detail="empty upload")

    assets = request.app.state.context.assets
    try:
        path = assets.put(f"training-images/{caller.uid}/{new_ulid()}/{name}", data, mime_type=mime_type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return UploadOut(path=path, mime_type=mime_type, size=len(data))
