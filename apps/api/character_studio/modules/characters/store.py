"""
Character record store (sqlite).

Every mutation is a single conditional UPDATE naming the allowed predecessor
states, so the status can only move forward along
pending -> training -> ready|error and the ready field set commits atomically.
After each commit the fresh snapshot is handed to `observer` (the observation
hub), never before.
"""
from __future__ import annotations

import json
import sqlite3
from typing import Any, Callable, Dict, List, Optional, Tuple

from character_studio.core.db import connect
from character_studio.core.errors import Internal, InvalidTransition, NotFound
from character_studio.core.ids import new_ulid, now_iso

TABLE = "user_characters"

PENDING = "pending"
TRAINING = "training"
READY = "ready"
ERROR = "error"

STATUSES = (PENDING, TRAINING, READY, ERROR)
TERMINAL = (READY, ERROR)

# target -> allowed predecessors
TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    TRAINING: (PENDING,),
    READY: (TRAINING,),
    ERROR: (TRAINING,),
}

PLACEHOLDER_NAME = "Processing..."

Observer = Callable[[str, Dict[str, Any]], None]


def _safe_json_list(v: Any) -> List[str]:
    if not v:
        return []
    try:
        out = json.loads(v)
    except ValueError:
        return []
    return [str(x) for x in out] if isinstance(out, list) else []


def _row_to_character(row: sqlite3.Row) -> Dict[str, Any]:
    d = dict(row)
    d["keywords"] = _safe_json_list(d.pop("keywords_json", None))
    return d


class CharacterStore:
    def __init__(self, database_url: str, observer: Optional[Observer] = None) -> None:
        self.database_url = database_url
        self.observer = observer

    def _connect(self) -> sqlite3.Connection:
        return connect(self.database_url)

    def _notify(self, snapshot: Dict[str, Any]) -> None:
        if self.observer is not None:
            self.observer(snapshot["id"], snapshot)

    def create(self, *, owner_id: str, preview_ref: Optional[str]) -> Dict[str, Any]:
        now = now_iso()
        row = {
            "id": new_ulid(),
            "owner_id": owner_id,
            "status": PENDING,
            "display_name": PLACEHOLDER_NAME,
            "description": "",
            "keywords_json": "[]",
            "model_ref": None,
            "preview_ref": preview_ref,
            "revision": 1,
            "created_at": now,
            "updated_at": now,
        }
        keys = sorted(row.keys())
        conn = self._connect()
        try:
            conn.execute(
                f"INSERT INTO {TABLE} ({','.join(keys)}) VALUES ({','.join(['?'] * len(keys))});",
                [row[k] for k in keys],
            )
            conn.commit()
            snapshot = self._get(conn, row["id"])
        finally:
            conn.close()

        if snapshot is None:
            raise Internal("Character vanished after write.", {"character_id": row["id"]})
        self._notify(snapshot)
        return snapshot

    def _get(self, conn: sqlite3.Connection, character_id: str) -> Optional[Dict[str, Any]]:
        row = conn.execute(f"SELECT * FROM {TABLE} WHERE id=?;", (character_id,)).fetchone()
        return _row_to_character(row) if row else None

    def get(self, character_id: str) -> Optional[Dict[str, Any]]:
        conn = self._connect()
        try:
            return self._get(conn, character_id)
        finally:
            conn.close()

    def require(self, character_id: str) -> Dict[str, Any]:
        c = self.get(character_id)
        if c is None:
            raise NotFound("Character not found.", {"character_id": character_id})
        return c

    def list_by_owner(self, owner_id: str, limit: int, offset: int) -> Tuple[List[Dict[str, Any]], int]:
        conn = self._connect()
        try:
            total = conn.execute(f"SELECT COUNT(1) AS n FROM {TABLE} WHERE owner_id=?;", (owner_id,)).fetchone()["n"]
            rows = conn.execute(
                f"SELECT * FROM {TABLE} WHERE owner_id=? ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?;",
                (owner_id, limit, offset),
            ).fetchall()
            return ([_row_to_character(r) for r in rows], int(total))
        finally:
            conn.close()

    def transition(
        self,
        character_id: str,
        to_status: str,
        *,
        display_name: Optional[str] = None,
        description: Optional[str] = None,
        keywords: Optional[List[str]] = None,
        model_ref: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Move a record to `to_status`. Profile fields are accepted only on the
        ready edge, and all four are required there.
        """
        allowed = TRANSITIONS.get(to_status)
        if allowed is None:
            raise InvalidTransition(f"unknown target status {to_status!r}", {"character_id": character_id})

        sets: List[str] = ["status=?"]
        args: List[Any] = [to_status]

        profile = (display_name, description, keywords, model_ref)
        if to_status == READY:
            if any(v is None for v in profile) or not model_ref:
                raise InvalidTransition("ready requires display_name, description, keywords and model_ref")
            sets += ["display_name=?", "description=?", "keywords_json=?", "model_ref=?"]
            args += [display_name, description, json.dumps(list(keywords or []), ensure_ascii=False), model_ref]
        elif any(v is not None for v in profile):
            raise InvalidTransition(f"profile fields can only be set on the {READY} transition")

        sets += ["revision=revision+1", "updated_at=?"]
        args.append(now_iso())

        where = f"id=? AND status IN ({','.join(['?'] * len(allowed))})"
        args += [character_id, *allowed]

        conn = self._connect()
        try:
            cur = conn.execute(f"UPDATE {TABLE} SET {', '.join(sets)} WHERE {where};", args)
            if cur.rowcount != 1:
                conn.rollback()
                current = self._get(conn, character_id)
                if current is None:
                    raise NotFound("Character not found.", {"character_id": character_id})
                raise InvalidTransition(
                    f"cannot move from {current['status']} to {to_status}",
                    {"character_id": character_id, "from": current["status"], "to": to_status},
                )
            conn.commit()
            snapshot = self._get(conn, character_id)
        finally:
            conn.close()

        if snapshot is None:
            raise Internal("Character vanished after write.", {"character_id": character_id})
        self._notify(snapshot)
        return snapshot
