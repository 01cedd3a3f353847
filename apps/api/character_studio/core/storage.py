"""
Local filesystem asset store.

Defaults:
- STORAGE_ROOT: ./data/storage

Assets are addressed by opaque relative paths, e.g.
`training-images/<uid>/<upload_id>/<filename>`. The media type declared at upload
is kept beside the asset and wins over a guess from the file name.
"""
from __future__ import annotations

import json
import mimetypes
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


def _repo_root() -> Path:
    # apps/api/character_studio/core/storage.py -> repo root = parents[4]
    return Path(__file__).resolve().parents[4]


# declared media type lives next to the asset: <path>.meta.json
META_SUFFIX = ".meta.json"


def resolve_storage_root(raw: str) -> Path:
    p = Path(raw)
    return (_repo_root() / p).resolve() if not p.is_absolute() else p


class AssetNotFound(LookupError):
    pass


class LocalAssetStore:
    def __init__(self, root: str) -> None:
        self.root = resolve_storage_root(root)

    def ensure_root(self) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    def _resolve(self, path: str) -> Path:
        rel = (path or "").strip().lstrip("/")
        if not rel:
            raise ValueError("empty asset path")
        root = self.root.resolve()
        p = (root / rel).resolve()
        if p == root or root not in p.parents:
            raise ValueError(f"asset path escapes storage root: {path!r}")
        return p

    def put(self, path: str, data: bytes, mime_type: Optional[str] = None) -> str:
        p = self._resolve(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)
        if mime_type:
            _meta_path(p).write_text(json.dumps({"mime_type": mime_type}), encoding="utf-8")
        return p.relative_to(self.root.resolve()).as_posix()

    def get(self, path: str) -> Tuple[bytes, str]:
        """Return (raw bytes, media type). Raises AssetNotFound."""
        try:
            p = self._resolve(path)
        except ValueError:
            raise AssetNotFound(path)
        if not p.is_file():
            raise AssetNotFound(path)
        return p.read_bytes(), _declared_media_type(p) or guess_media_type(p.name)

    def exists(self, path: str) -> bool:
        try:
            return self._resolve(path).is_file()
        except ValueError:
            return False

    def health(self) -> Dict[str, Any]:
        try:
            root = self.ensure_root()
            probe = root / ".probe_write"
            probe.write_text("ok", encoding="utf-8")
            probe.unlink()
            return {"status": "ok", "kind": "local_fs", "root": str(root.as_posix())}
        except Exception as e:
            return {"status": "error", "kind": "local_fs", "root": str(self.root.as_posix()), "error": str(e)}


def _meta_path(p: Path) -> Path:
    return p.with_name(p.name + META_SUFFIX)


def _declared_media_type(p: Path) -> Optional[str]:
    meta = _meta_path(p)
    if not meta.is_file():
        return None
    try:
        data = json.loads(meta.read_text(encoding="utf-8"))
    except ValueError:
        return None
    mime = data.get("mime_type") if isinstance(data, dict) else None
    return mime if isinstance(mime, str) and mime else None


def guess_media_type(filename: str, default: Optional[str] = "application/octet-stream") -> str:
    mime, _ = mimetypes.guess_type(filename)
    return mime or default or "application/octet-stream"
