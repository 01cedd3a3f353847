"""
Defensive extraction of the character profile from free model text.

The model is asked for a bare JSON object but routinely wraps it in prose or
markdown fences, or gets cut off. `extract_character_profile` never raises:
anything it cannot use is replaced field by field with FALLBACK_PROFILE.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

KEYWORD_LIMIT = 5

# opening braces tried before giving up; bounds the work on hostile input
MAX_CANDIDATES = 64


@dataclass(frozen=True)
class CharacterProfile:
    name: str
    description: str
    keywords: Tuple[str, ...]
    fallback_fields: Tuple[str, ...] = ()

    @property
    def is_fallback(self) -> bool:
        return bool(self.fallback_fields)


FALLBACK_PROFILE = CharacterProfile(
    name="Mysterious Hero",
    description="A character of unknown origin, ready for adventure.",
    keywords=("mysterious", "heroic", "adventurous", "brave", "enigmatic"),
)


def iter_brace_regions(text: str) -> Iterator[str]:
    """
    Yield balanced `{...}` regions in order of their opening brace (at most MAX_CANDIDATES starts).
    Braces inside JSON string literals are ignored; unterminated regions are skipped.
    """
    start = text.find("{")
    tried = 0
    while start != -1 and tried < MAX_CANDIDATES:
        tried += 1
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    yield text[start : i + 1]
                    break
        start = text.find("{", start + 1)


def extract_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """First balanced region that decodes to a JSON object, else None."""
    if not text:
        return None
    for region in iter_brace_regions(text):
        try:
            value = json.loads(region)
        except (ValueError, RecursionError):
            continue
        if isinstance(value, dict):
            return value
    return None


def _clean_str(v: Any) -> Optional[str]:
    if not isinstance(v, str):
        return None
    s = v.strip()
    return s or None


def _clean_keywords(v: Any) -> Optional[Tuple[str, ...]]:
    if not isinstance(v, list):
        return None
    out: List[str] = []
    for item in v:
        s = _clean_str(item)
        if s is not None:
            out.append(s)
        if len(out) == KEYWORD_LIMIT:
            break
    return tuple(out) or None


def extract_character_profile(text: Optional[str]) -> CharacterProfile:
    payload = extract_json_object(text) or {}
    fallback: List[str] = []

    name = _clean_str(payload.get("characterName"))
    if name is None:
        name = _clean_str(payload.get("name"))
    if name is None:
        name = FALLBACK_PROFILE.name
        fallback.append("characterName")

    description = _clean_str(payload.get("description"))
    if description is None:
        description = FALLBACK_PROFILE.description
        fallback.append("description")

    keywords = _clean_keywords(payload.get("keywords"))
    if keywords is None:
        keywords = FALLBACK_PROFILE.keywords
        fallback.append("keywords")

    return CharacterProfile(name=name, description=description, keywords=keywords, fallback_fields=tuple(fallback))
