from __future__ import annotations

from typing import List, Literal, Optional
from pydantic import BaseModel, Field

CharacterStatus = Literal["pending", "training", "ready", "error"]


class PageOut(BaseModel):
    offset: int
    limit: int
    total: int
    has_more: bool


class TuningSettingsIn(BaseModel):
    # accepted for API compatibility; the simulated training ignores them
    learning_rate: Optional[float] = None
    epochs: Optional[int] = None


class TuningStartIn(BaseModel):
    files: List[str] = Field(default_factory=list)
    settings: TuningSettingsIn = Field(default_factory=TuningSettingsIn)


class TuningStartOut(BaseModel):
    character_id: str


class CharacterOut(BaseModel):
    id: str
    owner_id: str
    status: CharacterStatus
    display_name: str
    description: str = ""
    keywords: List[str] = Field(default_factory=list)
    preview_ref: Optional[str] = None
    model_ref: Optional[str] = None
    revision: int = 1
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CharactersListOut(BaseModel):
    items: List[CharacterOut]
    page: PageOut


class VisualizationIn(BaseModel):
    prompt: str = Field(min_length=1, max_length=2000)


class VisualizationOut(BaseModel):
    base64_image: str
    mime_type: str = "image/png"
