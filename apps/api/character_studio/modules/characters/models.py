from __future__ import annotations

from typing import Optional
from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field


# status lock: pending|training|ready|error (monotonic; ready/error terminal)
class UserCharacter(SQLModel, table=True):
    __tablename__ = "user_characters"
    __table_args__ = (
        CheckConstraint("status IN ('pending','training','ready','error')", name="ck_user_characters_status"),
    )

    id: str = Field(primary_key=True)
    owner_id: str = Field(index=True)
    status: str = Field(index=True)

    # write-once at training -> ready
    display_name: str
    description: str
    keywords_json: str
    model_ref: Optional[str] = Field(default=None)

    preview_ref: Optional[str] = Field(default=None)

    # bumped on every committed mutation; observers drop stale snapshots by it
    revision: int = Field(default=1)

    created_at: str
    updated_at: str


# keep in sync with migrations/versions/0001_user_characters.py
TERMINAL_STATUS_TRIGGER_SQL = """
CREATE TRIGGER IF NOT EXISTS trg_user_characters_terminal
BEFORE UPDATE OF status ON user_characters
WHEN OLD.status IN ('ready','error')
BEGIN
    SELECT RAISE(ABORT, 'user_characters: terminal status');
END;
"""
