"""
Structured JSON-line logging.

Contract locks:
- line keys: ts, level, message, request_id, event, module (+ extra)
"""
from __future__ import annotations

import datetime
import json
import logging
from typing import Any, Dict, Optional

_LEVELS = {"debug": logging.DEBUG, "info": logging.INFO, "warning": logging.WARNING, "error": logging.ERROR}

_log = logging.getLogger("character_studio")


def configure_logging(level: str = "INFO") -> None:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=level.upper())
    _log.setLevel(level.upper())


def _now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def emit(level: str, event: str, message: str, request_id: Optional[str], module: str, **extra: Any) -> None:
    if not _log.isEnabledFor(_LEVELS.get(level.lower(), logging.INFO)):
        return
    payload: Dict[str, Any] = {
        "ts": _now_iso(),
        "level": level.lower(),
        "message": message,
        "request_id": request_id,
        "event": event,
        "module": module,
    }
    payload.update(extra)
    print(json.dumps(payload, ensure_ascii=False, default=str), flush=True)
