"""
DB utilities (sqlite default).

Defaults:
- DATABASE_URL: sqlite:///./data/app.db
"""
from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Dict, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel


def _repo_root() -> Path:
    # apps/api/character_studio/core/db.py -> repo root = parents[4]
    return Path(__file__).resolve().parents[4]


def resolve_sqlite_path(database_url: str) -> Optional[Path]:
    if not database_url.startswith("sqlite:///"):
        return None
    p = database_url[len("sqlite:///") :]

    # absolute unix
    if p.startswith("/"):
        return Path(p)

    # absolute windows drive, both C:/ and C:\ forms
    if len(p) >= 3 and p[1] == ":" and (p[2] == "/" or p[2] == "\\"):
        return Path(p)

    # relative -> repo root
    return (_repo_root() / p).resolve()


def _sqlite_path(database_url: str) -> Path:
    sp = resolve_sqlite_path(database_url)
    if sp is None:
        raise ValueError(f"Only sqlite supported for now, got DATABASE_URL={database_url!r}")
    return sp


def make_engine(database_url: str) -> Engine:
    sp = _sqlite_path(database_url)
    sp.parent.mkdir(parents=True, exist_ok=True)
    return create_engine("sqlite:///" + sp.as_posix(), future=True, connect_args={"check_same_thread": False})


def init_db(database_url: str) -> None:
    """Create missing tables from the SQLModel metadata (dev/tests; deployments run alembic)."""
    # importing registers the table models on SQLModel.metadata
    from character_studio.modules.characters.models import TERMINAL_STATUS_TRIGGER_SQL

    engine = make_engine(database_url)
    try:
        SQLModel.metadata.create_all(engine)
        with engine.begin() as conn:
            conn.exec_driver_sql(TERMINAL_STATUS_TRIGGER_SQL)
    finally:
        engine.dispose()


def connect(database_url: str) -> sqlite3.Connection:
    conn = sqlite3.connect(_sqlite_path(database_url).as_posix(), timeout=10, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def db_health(database_url: str) -> Dict[str, Any]:
    kind = "sqlite" if database_url.startswith("sqlite") else "unknown"
    sp = resolve_sqlite_path(database_url)
    path = str(sp.as_posix()) if sp is not None else database_url

    try:
        eng = make_engine(database_url)
        try:
            with eng.connect() as conn:
                conn.execute(text("SELECT 1"))
        finally:
            eng.dispose()
        return {"status": "ok", "kind": kind, "path": path}
    except Exception as e:
        return {"status": "error", "kind": kind, "path": path, "error": str(e)}
